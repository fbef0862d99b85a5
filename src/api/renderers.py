"""JSON renderer wrapping payloads in the ``{status, data}`` envelope."""
from rest_framework.renderers import JSONRenderer

ENVELOPE_STATUSES = ("success", "error")


class EnvelopeJSONRenderer(JSONRenderer):
    """Wrap successful payloads as ``{"status": "success", "data": ...}``.

    Bodies already shaped as an envelope (error handler output, delete
    confirmations) are rendered unchanged. Non-exception error responses
    (e.g. an unhealthy health check) become ``status: "error"`` envelopes.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = (renderer_context or {}).get("response")
        if response is not None and not self._is_envelope(data):
            if response.status_code >= 400:
                data = {"status": "error", "message": response.status_text, "data": data}
            elif response.status_code != 204:
                data = {"status": "success", "data": data}
        return super().render(data, accepted_media_type, renderer_context)

    @staticmethod
    def _is_envelope(data) -> bool:
        return isinstance(data, dict) and data.get("status") in ENVELOPE_STATUSES
