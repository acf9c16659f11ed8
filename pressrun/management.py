"""
Management commands for inventory maintenance
"""
import click
from flask.cli import with_appcontext

from .exceptions import ProductionError
from .services.base_service import load_batch
from .services.inventory import audit_stock_invariants, rebuild_stock_from_ledger, release_for_batch


@click.command('rebuild-stock')
@click.option('--store', 'store_id', default=None, help='Only rebuild stock rows for this store')
@with_appcontext
def rebuild_stock_command(store_id):
    """Recompute on-hand and reserved for every stock row from the ledger"""
    result = rebuild_stock_from_ledger(store_id)
    click.echo(f"Rebuilt {result['rows']} stock rows ({len(result['changed'])} changed)")


@click.command('check-inventory-invariants')
@click.option('--store', 'store_id', default=None, help='Only check this store')
@with_appcontext
def check_inventory_invariants_command(store_id):
    """Report stock rows that break bounds or drift from the ledger"""
    violations = audit_stock_invariants(store_id)
    if not violations:
        click.echo("Inventory invariants hold")
        return

    for violation in violations:
        click.echo(
            f"{violation['kind']}: "
            f"location={violation['location_id']} sku={violation['sku_id']} "
            f"on_hand={violation.get('on_hand')} reserved={violation.get('reserved')}"
        )
    click.echo(f"{len(violations)} inventory invariant violation(s)", err=True)
    raise SystemExit(2)


@click.command('release-batch-reservations')
@click.argument('batch_id')
@click.option('--actor', 'actor_id', default=None, help='Actor recorded on the ledger entries')
@with_appcontext
def release_batch_reservations_command(batch_id, actor_id):
    """Release every held reservation of a batch (operator recovery)"""
    try:
        batch = load_batch(batch_id, for_update=True)
        result = release_for_batch(batch, actor_id=actor_id)
    except ProductionError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"Released {result['released']} reservation(s) for batch {batch.id}")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(rebuild_stock_command)
    app.cli.add_command(check_inventory_invariants_command)
    app.cli.add_command(release_batch_reservations_command)
