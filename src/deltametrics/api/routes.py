"""Flask blueprint exposing the five repository operations for every entity."""

from typing import TYPE_CHECKING, Any, Mapping, Optional

from flask import Blueprint, jsonify, request

from ..utils.logging import get_logger
from . import entities_api
from .models import HealthStatus

if TYPE_CHECKING:
    from ..cache.result_cache import ResultCache
    from ..database.descriptor import EntityRegistry
    from ..database.repository import Repository
    from ..ops.view_refresh import ViewRefreshScheduler

logger = get_logger(__name__)


def build_entities_blueprint(
    repositories: Mapping[str, "Repository"],
    registry: "EntityRegistry",
    cache: Optional["ResultCache"] = None,
    scheduler: Optional["ViewRefreshScheduler"] = None,
) -> Blueprint:
    bp = Blueprint("entities", __name__)

    @bp.route("/_entities", methods=["GET"])
    def list_entities():
        return jsonify(entities_api.describe_entities(registry))

    @bp.route("/_health", methods=["GET"])
    def health():
        status = HealthStatus(
            entities=len(registry),
            cache=cache.stats() if cache is not None else None,
            scheduler=scheduler.status() if scheduler is not None else None,
        )
        return jsonify(status.model_dump())

    @bp.route("/<entity>", methods=["GET"])
    def list_records(entity: str):
        page, page_size, order = entities_api.parse_pagination(request.args)
        results = entities_api.list_records(repositories, entity, page, page_size, order)
        return jsonify(results.model_dump())

    @bp.route("/<entity>/<int:record_id>", methods=["GET"])
    def get_record(entity: str, record_id: int):
        return jsonify(entities_api.get_record(repositories, entity, record_id))

    @bp.route("/<entity>", methods=["POST"])
    def create_record(entity: str):
        body = entities_api.require_body(request.get_json(silent=True))
        return jsonify(entities_api.create_record(repositories, entity, body)), 201

    @bp.route("/<entity>/<int:record_id>", methods=["PUT"])
    def update_record(entity: str, record_id: int):
        body = entities_api.require_body(request.get_json(silent=True))
        return jsonify(entities_api.update_record(repositories, entity, record_id, body))

    @bp.route("/<entity>/<int:record_id>", methods=["DELETE"])
    def delete_record(entity: str, record_id: int):
        return jsonify(entities_api.delete_record(repositories, entity, record_id).model_dump())

    return bp


def handle_layer_error(error: Exception) -> Any:
    body, status = entities_api.error_response(error)
    if status >= 500:
        logger.error(f"{request.method} {request.path} failed: {error}")
    return jsonify(body.model_dump()), status
