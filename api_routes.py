"""API routes for the product video miner."""
from __future__ import annotations

import logging

from flask import Response, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

import miner
from app_utils import get_current_timestamp, pin_matches, run_async
from miner.errors import IdentityNotFoundError, MinerError
from miner.generation import GenerationRequest
from miner.schemas import (
    MineRequest,
    PinCaptionRequest,
    PinImageRequest,
    PinterestBoardsRequest,
    PinterestCallbackRequest,
    PinterestPinRequest,
    SeedanceCreateRequest,
    SeedanceQueryRequest,
    SoraRequest,
    UrlRequest,
    VideoCaptionRequest,
)

logger = logging.getLogger("videominer")

PIN_HEADER = "X-Access-Pin"


def _body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    message = first.get("msg", "invalid value")
    return f"Dados inválidos: {field}: {message}" if field else f"Dados inválidos: {message}"


def register_routes(app):
    """Register all API routes with the Flask app.

    Settings are read from the ``miner`` module on every request so that
    ``miner.configure`` takes effect without re-registering.
    """

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"success": False, "error": _validation_message(exc)}), 400

    @app.errorhandler(MinerError)
    def handle_miner_error(exc: MinerError):
        logger.warning("%s on %s: %s", type(exc).__name__, request.path, exc.message)
        return jsonify({"success": False, "error": exc.message}), exc.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.error("Unhandled error on %s: %s", request.path, exc, exc_info=True)
        return jsonify({"success": False, "error": MinerError.default_message}), 500

    @app.before_request
    def require_access_pin():
        if request.method == "OPTIONS" or not request.path.startswith("/api/"):
            return None
        if pin_matches(miner.SETTINGS.access_pin, request.headers.get(PIN_HEADER)):
            return None
        logger.info("Rejected %s %s: bad or missing access PIN", request.method, request.path)
        return jsonify({"success": False, "error": "PIN de acesso inválido."}), 401

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": get_current_timestamp()})

    @app.route("/api/mine", methods=["POST"])
    def api_mine():
        body = MineRequest.model_validate(_body())
        logger.info("Received mining request for %s", body.url)
        result = run_async(miner.mine_product_videos(body.url, body.sources))
        status = 200 if result.success else IdentityNotFoundError.status_code
        return jsonify(result.to_dict()), status

    @app.route("/api/extract/shopee", methods=["POST"])
    def api_extract_shopee():
        body = UrlRequest.model_validate(_body())
        product = run_async(miner.extract_shopee_product(body.url))
        return jsonify(product.to_dict())

    @app.route("/api/extract/shopee-video", methods=["POST"])
    def api_extract_shopee_video():
        body = UrlRequest.model_validate(_body())
        video = run_async(miner.extract_shopee_video(body.url))
        return jsonify(video.to_dict())

    @app.route("/api/extract/sora", methods=["POST"])
    def api_extract_sora():
        body = SoraRequest.model_validate(_body())
        if body.action == "download":
            content, content_type = run_async(miner.download_sora_video(body.video_url))
            return Response(
                content,
                mimetype=content_type,
                headers={"Content-Disposition": 'attachment; filename="sora-video.mp4"'},
            )
        data = run_async(miner.extract_sora_video(body.url))
        return jsonify(data.to_dict())

    @app.route("/api/seedance/create", methods=["POST"])
    def api_seedance_create():
        body = SeedanceCreateRequest.model_validate(_body())
        created = run_async(
            miner.create_generation(
                GenerationRequest(
                    prompt=body.prompt,
                    aspect_ratio=body.aspect_ratio,
                    duration=body.duration,
                    mode=body.mode,
                    media_files=body.media_files,
                )
            )
        )
        return jsonify({"success": True, **created})

    @app.route("/api/seedance/query", methods=["POST"])
    def api_seedance_query():
        body = SeedanceQueryRequest.model_validate(_body())
        response = run_async(miner.query_generation(body.task_id))
        return jsonify({"success": True, "taskId": body.task_id, **response.to_dict()})

    @app.route("/api/captions/video", methods=["POST"])
    def api_video_caption():
        body = VideoCaptionRequest.model_validate(_body())
        if body.rewrite_title and body.original_title:
            return jsonify({"rewrittenTitle": run_async(miner.rewrite_title(body.original_title))})
        if body.rewrite_caption and body.original_caption:
            return jsonify({"rewrittenCaption": run_async(miner.rewrite_caption(body.original_caption))})
        caption = run_async(miner.video_caption(body.product_title, body.video_title, body.platform))
        return jsonify({"caption": caption})

    @app.route("/api/captions/pinterest", methods=["POST"])
    def api_pin_caption():
        body = PinCaptionRequest.model_validate(_body())
        caption = run_async(miner.pin_caption(body.product_title, body.scene_description))
        return jsonify({"success": True, **caption})

    @app.route("/api/images/pinterest", methods=["POST"])
    def api_pin_image():
        body = PinImageRequest.model_validate(_body())
        image = run_async(
            miner.pinterest_image(
                body.product_title,
                image_url=body.image_url,
                custom_prompt=body.custom_prompt,
                scene_index=body.scene_index,
            )
        )
        return jsonify({"success": True, **image})

    @app.route("/api/pinterest/auth-url")
    def api_pinterest_auth_url():
        redirect_uri = request.args.get("redirectUri") or request.args.get("redirect_uri")
        return jsonify({"authUrl": miner.pinterest_auth_url(redirect_uri)})

    @app.route("/api/pinterest/callback", methods=["POST"])
    def api_pinterest_callback():
        body = PinterestCallbackRequest.model_validate(_body())
        token = run_async(miner.pinterest_exchange_code(body.code, body.redirect_uri))
        return jsonify({"success": True, **token})

    @app.route("/api/pinterest/boards", methods=["POST"])
    def api_pinterest_boards():
        body = PinterestBoardsRequest.model_validate(_body())
        boards = run_async(miner.pinterest_boards(body.access_token))
        return jsonify({"success": True, "boards": boards})

    @app.route("/api/pinterest/pins", methods=["POST"])
    def api_pinterest_pins():
        body = PinterestPinRequest.model_validate(_body())
        pin = run_async(
            miner.pinterest_create_pin(
                body.access_token,
                board_id=body.board_id,
                image_base64=body.image_base64,
                title=body.title,
                description=body.description,
                link=body.link,
            )
        )
        return jsonify({"success": True, "pin": pin})

    @app.route("/api/system-health")
    def api_system_health():
        """API endpoint for system health status."""
        logger.info("Received request for system health status")
        status_payload = miner.get_pipeline_status()
        adapters = {
            entry["name"]: {key: value for key, value in entry.items() if key != "name"}
            for entry in status_payload["pipeline"]["health"]
        }
        return jsonify(
            {
                "status": "ok",
                "env": status_payload["integrations"],
                "adapter_health": adapters,
                "pipeline_status": status_payload,
                "timestamp": get_current_timestamp(),
            }
        )
