"""
Warisin
AI Blueprint — program description drafting.

Endpoints:
    POST /api/ai-assistant   — {prompt, programTitle?, category?, duration?, location?}
                               → {success, description, fallback, provider}
"""

import logging

from flask import Blueprint, current_app, jsonify

from warisin.ai.description_assistant import DescriptionAssistant
from warisin.ai.gateway import LLMGateway
from warisin.blueprints import current_user, json_body
from warisin.core.exceptions import ValidationError
from warisin.middleware.session_auth import login_required

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__, url_prefix="/api")


# ── Lazy singleton stored on Flask app (test-isolation safe) ────────────────

def _get_gateway():
    gateway = current_app.extensions.get("warisin_llm_gateway")
    if gateway is None:
        gateway = LLMGateway(app=current_app)
        current_app.extensions["warisin_llm_gateway"] = gateway
    return gateway


@ai_bp.route("/ai-assistant", methods=["POST"])
@login_required
def ai_assistant():
    data = json_body()
    prompt = (data.get("prompt") or "").strip()
    if not prompt:
        raise ValidationError("Prompt is required", details={"prompt": "required"})

    assistant = DescriptionAssistant(gateway=_get_gateway())
    result = assistant.generate(
        prompt,
        title=data.get("programTitle"),
        category=data.get("category"),
        duration=data.get("duration"),
        location=data.get("location"),
        user=current_user().id,
    )
    return jsonify({"success": True, **result})
