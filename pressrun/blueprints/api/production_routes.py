import io
import logging

from flask import Blueprint, Response, current_app, request, send_file

from ...extensions import limiter
from ...services.batch_service import (
    BatchFormationService,
    BatchManagementService,
    BatchStageService,
    ProductionDocumentService,
    ScanService,
)
from ...services.inventory import (
    consume_batch,
    list_batch_reservations,
    release_batch,
    reserve_batch,
)
from ...utils.api_responses import APIResponse, api_route
from .common import current_actor_id, current_tenant_id, json_body, require_inventory

logger = logging.getLogger(__name__)

production_api_bp = Blueprint('production_api', __name__, url_prefix='/api/production')


def _scan_rate_limit():
    return current_app.config.get('SCAN_RATE_LIMIT') or '30 per minute'


def _batch_summary(batch):
    data = batch.to_dict(include_items=False)
    data['item_count'] = len(batch.items)
    return data


def _reservation_payload(result):
    payload = dict(result)
    payload['reservations'] = [reservation.to_dict() for reservation in result['reservations']]
    return payload


# Batches

@production_api_bp.route('/batches', methods=['GET'])
@api_route
def list_batches():
    tenant_id = current_tenant_id()
    batches = BatchManagementService.list_batches(
        tenant_id,
        stage=request.args.get('stage'),
        method=request.args.get('method'),
        store_id=request.args.get('store_id'),
        campaign_id=request.args.get('campaign_id'),
        q=request.args.get('q'),
    )
    return APIResponse.success([_batch_summary(batch) for batch in batches])


@production_api_bp.route('/batches/<batch_id>', methods=['GET'])
@api_route
def get_batch(batch_id):
    return APIResponse.success(BatchManagementService.batch_detail(current_tenant_id(), batch_id))


@production_api_bp.route('/batches/from-order/<order_id>', methods=['POST'])
@api_route
def create_from_order(order_id):
    batches = BatchFormationService.create_batches_from_order(
        current_tenant_id(), order_id, actor_id=current_actor_id()
    )
    return APIResponse.success([batch.to_dict() for batch in batches], message="Batches ready")


@production_api_bp.route('/batches/from-bulk-order/<bulk_order_id>', methods=['POST'])
@api_route
def create_from_bulk_order(bulk_order_id):
    batches = BatchFormationService.create_batches_from_bulk_order(
        current_tenant_id(), bulk_order_id, actor_id=current_actor_id()
    )
    return APIResponse.success([batch.to_dict() for batch in batches], message="Batches ready")


@production_api_bp.route('/batches/<batch_id>/assign', methods=['POST'])
@api_route
def assign_batch(batch_id):
    data = json_body()
    assignment = BatchManagementService.assign(
        current_tenant_id(),
        batch_id,
        data.get('user_id'),
        actor_id=current_actor_id(),
        role=data.get('role') or 'OPERATOR',
    )
    return APIResponse.success(assignment.to_dict(), message="Batch assigned")


@production_api_bp.route('/batches/<batch_id>/unassign', methods=['POST'])
@api_route
def unassign_batch(batch_id):
    result = BatchManagementService.unassign(current_tenant_id(), batch_id, actor_id=current_actor_id())
    return APIResponse.success(result, message="Batch unassigned")


@production_api_bp.route('/batches/<batch_id>/stage', methods=['POST'])
@api_route
def transition_batch(batch_id):
    data = json_body()
    batch = BatchStageService.transition(
        current_tenant_id(),
        batch_id,
        data.get('to_stage'),
        actor_id=current_actor_id(),
        note=data.get('note'),
    )
    return APIResponse.success(batch.to_dict(), message=f"Batch moved to {batch.stage}")


# Batch inventory

@production_api_bp.route('/batches/<batch_id>/inventory', methods=['GET'])
@api_route
def batch_inventory(batch_id):
    tenant_id = current_tenant_id()
    require_inventory(tenant_id)
    reservations = list_batch_reservations(tenant_id, batch_id)
    return APIResponse.success([reservation.to_dict() for reservation in reservations])


@production_api_bp.route('/batches/<batch_id>/inventory/reserve', methods=['POST'])
@api_route
def reserve_batch_inventory(batch_id):
    tenant_id = current_tenant_id()
    require_inventory(tenant_id)
    result = reserve_batch(tenant_id, batch_id, actor_id=current_actor_id())
    return APIResponse.success(_reservation_payload(result), message=f"Inventory {result['status']}")


@production_api_bp.route('/batches/<batch_id>/inventory/release', methods=['POST'])
@api_route
def release_batch_inventory(batch_id):
    tenant_id = current_tenant_id()
    require_inventory(tenant_id)
    return APIResponse.success(release_batch(tenant_id, batch_id, actor_id=current_actor_id()))


@production_api_bp.route('/batches/<batch_id>/inventory/consume', methods=['POST'])
@api_route
def consume_batch_inventory(batch_id):
    tenant_id = current_tenant_id()
    require_inventory(tenant_id)
    return APIResponse.success(consume_batch(tenant_id, batch_id, actor_id=current_actor_id()))


# Documents

@production_api_bp.route('/batches/<batch_id>/ticket', methods=['GET'])
@api_route
def batch_ticket(batch_id):
    html = ProductionDocumentService.render_ticket(current_tenant_id(), batch_id, actor_id=current_actor_id())
    return Response(html, mimetype='text/html')


@production_api_bp.route('/batches/<batch_id>/export.zip', methods=['GET'])
@api_route
def batch_export(batch_id):
    filename, payload = ProductionDocumentService.export_zip(
        current_tenant_id(), batch_id, actor_id=current_actor_id()
    )
    return send_file(
        io.BytesIO(payload),
        mimetype='application/zip',
        as_attachment=True,
        download_name=filename,
    )


# Scan (token is the only credential)

@production_api_bp.route('/scan/<token>', methods=['POST'])
@limiter.limit(_scan_rate_limit)
@api_route
def scan_action(token):
    data = json_body()
    batch = ScanService.perform_action(
        token,
        data.get('action'),
        note=data.get('note'),
        actor_id=current_actor_id(),
    )
    return APIResponse.success(
        {'batch_id': batch.id, 'stage': batch.stage}, message=f"Batch moved to {batch.stage}"
    )
