"""Fake WhatsApp adapter: records template messages for testing."""

from uuid import uuid4

from checkout.messaging.port import WhatsAppPort


class FakeWhatsAppAdapter(WhatsAppPort):
    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "WhatsApp delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "WhatsApp delivery failed",
        should_raise: bool = False,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_raise = should_raise

    def send_template(self, to: str, template: str, parameters: list[str]) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"wamid-{uuid4().hex[:12]}"
        self.sent_messages.append(
            {"message_id": message_id, "to": to, "template": template, "parameters": list(parameters)}
        )
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.configure()
