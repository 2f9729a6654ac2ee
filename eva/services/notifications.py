"""Proactive client notifications triggered by domain events."""

from eva.config import AssistantConfig
from eva.models.llm import LLMMessage
from eva.models.notifications import NotificationEvent, NotificationOutcome, NotificationResult
from eva.services.conversations import ConversationService
from eva.services.firms import load_firm
from eva.services.llm import LLMService
from eva.services.prompts import NOTIFICATION_USER_PROMPT, build_notification_prompt
from eva.storage.base import DataStore, Query
from eva.utils.logging import bind_log_context, get_logger

logger = get_logger(__name__)


class NotificationEngine:
    """Turns a domain event into a lawyer-attributed message to the client.

    Best effort: `process` never raises. Every path ends in a
    `NotificationResult` whose outcome says what happened.
    """

    def __init__(
        self,
        store: DataStore,
        llm_service: LLMService,
        config: AssistantConfig,
        conversations: ConversationService | None = None,
    ):
        self.store = store
        self.llm_service = llm_service
        self.config = config
        self.conversations = conversations or ConversationService(store, config)

    async def process(self, event: NotificationEvent) -> NotificationResult:
        """Handle one event.

        Returns:
            The outcome; `FAILED` carries the error message as its reason
        """
        bind_log_context(event.law_firm_id, None)
        try:
            return await self._process(event)
        except Exception as e:
            logger.error(
                f"Failed to process notification event {event.event_type} "
                f"(firm={event.law_firm_id}, matter={event.matter_id}): {e}",
                exc_info=True,
            )
            return NotificationResult(outcome=NotificationOutcome.FAILED, reason=str(e))

    async def _resolve_contact(self, event: NotificationEvent) -> str | None:
        if event.contact_id:
            return event.contact_id
        if not event.matter_id:
            return None
        link = await self.store.select_one(
            "matter_contacts",
            Query().select("contact_id").eq("matter_id", event.matter_id).eq("law_firm_id", event.law_firm_id),
        )
        return link["contact_id"] if link else None

    async def _process(self, event: NotificationEvent) -> NotificationResult:
        firm = await load_firm(self.store, event.law_firm_id, self.config.default_firm_name)
        if firm is None:
            return NotificationResult(
                outcome=NotificationOutcome.SKIPPED_DISABLED, reason="Escritório não encontrado"
            )
        if not firm.features.is_notification_enabled(event.event_type):
            logger.debug(f"Notification {event.event_type} disabled for firm {event.law_firm_id}")
            return NotificationResult(outcome=NotificationOutcome.SKIPPED_DISABLED)

        contact_id = await self._resolve_contact(event)
        if not contact_id:
            return NotificationResult(outcome=NotificationOutcome.SKIPPED_NO_CONTACT)

        sender_id = await self.conversations.resolve_staff_sender(event.law_firm_id, event.matter_id)
        if not sender_id:
            return NotificationResult(outcome=NotificationOutcome.SKIPPED_NO_SENDER)

        conversation_id = await self.conversations.resolve_client_conversation(event.law_firm_id, contact_id)

        system_prompt = build_notification_prompt(firm.name, event.event_type, event.metadata)
        content, usage = await self.llm_service.generate_text(
            system_prompt=system_prompt,
            messages=[LLMMessage(role="user", content=NOTIFICATION_USER_PROMPT)],
            model=self.config.default_model,
            max_tokens=self.config.notification_max_tokens,
            temperature=self.config.notification_temperature,
        )
        if not content.strip():
            return NotificationResult(
                outcome=NotificationOutcome.SKIPPED_EMPTY_GENERATION, conversation_id=conversation_id
            )

        message = await self.conversations.post_client_message(
            event.law_firm_id, conversation_id, contact_id, sender_id, content
        )

        audit_conversation_id = await self.conversations.resolve_or_create_ai_conversation(
            event.law_firm_id, sender_id, "proactive"
        )
        await self.conversations.add_message(
            audit_conversation_id,
            event.law_firm_id,
            "assistant",
            content,
            tokens_input=usage.input_tokens,
            tokens_output=usage.output_tokens,
            source_type="proactive",
            source_conversation_id=conversation_id,
            metadata={"event_type": event.event_type, "matter_id": event.matter_id, "contact_id": contact_id},
        )
        await self.conversations.increment_tokens(audit_conversation_id, usage.total_tokens)

        logger.info(f"Sent {event.event_type} notification to contact {contact_id} in conversation {conversation_id}")
        return NotificationResult(
            outcome=NotificationOutcome.SENT, conversation_id=conversation_id, message_id=message["id"]
        )
