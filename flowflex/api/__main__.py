"""Run the HTTP API.

Usage:
    python -m flowflex.api
"""

import uvicorn

from flowflex.core.configs import app_config


def main() -> None:
    uvicorn.run(
        'flowflex.api.app:create_app',
        factory=True,
        host=app_config.API_HOST,
        port=app_config.API_PORT,
    )


if __name__ == '__main__':
    main()
