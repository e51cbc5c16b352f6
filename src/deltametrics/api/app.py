"""Flask application factory."""

from typing import TYPE_CHECKING, Mapping, Optional

from flask import Flask

from ..errors import RepositoryError, RequestError
from .routes import build_entities_blueprint, handle_layer_error

if TYPE_CHECKING:
    from ..cache.result_cache import ResultCache
    from ..database.descriptor import EntityRegistry
    from ..database.repository import Repository
    from ..ops.view_refresh import ViewRefreshScheduler


def create_app(
    repositories: Mapping[str, "Repository"],
    registry: "EntityRegistry",
    cache: Optional["ResultCache"] = None,
    scheduler: Optional["ViewRefreshScheduler"] = None,
) -> Flask:
    app = Flask("deltametrics")
    # Keep fields in descriptor order.
    app.json.sort_keys = False

    app.register_blueprint(build_entities_blueprint(repositories, registry, cache, scheduler))
    app.register_error_handler(RepositoryError, handle_layer_error)
    app.register_error_handler(RequestError, handle_layer_error)

    app.extensions["deltametrics"] = {
        "repositories": repositories,
        "registry": registry,
        "cache": cache,
        "scheduler": scheduler,
    }
    return app
