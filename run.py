#!/usr/bin/env python3
"""
Local development server. Deployments serve ``wsgi:app`` from a WSGI server.
"""
import logging
import sys

from pressrun import create_app
from pressrun.config import settings

app = create_app()


def main() -> None:
    production = app.config.get('ENV') == 'production'
    if production and not settings.flag('ALLOW_DEV_SERVER_IN_PRODUCTION'):
        print(
            "Refusing to start the Flask dev server in production; serve wsgi:app instead.",
            file=sys.stderr,
        )
        raise SystemExit(2)

    debug = not production and settings.flag('FLASK_DEBUG', True)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stdout,
    )
    app.run(host='0.0.0.0', port=settings.integer('PORT', 5000), debug=debug, use_reloader=debug)


if __name__ == '__main__':
    main()
