import logging
from typing import Dict, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from clinic_bot.core.clinic_time import now_utc, as_utc
from clinic_bot.core.constants import IDLE
from clinic_bot.core.utils import normalize_phone
from clinic_bot.models.conversation import WhatsAppConversation

logger = logging.getLogger(__name__)

class ConversationStateManager:
    """Persists one conversation row per phone number across message turns"""

    def get_state(self, phone: str, db: Session) -> Optional[WhatsAppConversation]:
        """
        Fetch the conversation for a phone number without touching it.

        Args:
            phone: Phone number (any formatting)
            db: Database session

        Returns:
            WhatsAppConversation or None
        """
        return db.query(WhatsAppConversation).filter(
            WhatsAppConversation.phone == normalize_phone(phone)
        ).first()

    def get_or_create(self, phone: str, db: Session) -> WhatsAppConversation:
        """
        Fetch the conversation for a phone number, creating an idle one on
        first contact. An existing row gets its last_message_at touched; the
        value it had before is kept on `previous_message_at` for the timeout
        check.

        Concurrent first contact is resolved by the unique phone constraint:
        the losing insert re-reads the winner's row.
        """
        phone = normalize_phone(phone)
        now = now_utc()

        conversation = self.get_state(phone, db)
        if conversation:
            previous = as_utc(conversation.last_message_at)
            conversation.last_message_at = now
            self._commit(db)
            conversation.previous_message_at = previous
            logger.info(f"Conversation found for {phone}: {conversation.flow}/{conversation.current_step}")
            return conversation

        try:
            conversation = WhatsAppConversation(
                phone=phone,
                flow=None,
                current_step=IDLE,
                context={},
                last_message_at=now,
            )
            db.add(conversation)
            db.commit()
            logger.info(f"Created new conversation for {phone}")
        except IntegrityError:
            # Another request created it first
            db.rollback()
            conversation = self.get_state(phone, db)
            if not conversation:
                raise
            logger.info(f"Conversation for {phone} created concurrently, reusing it")

        conversation.previous_message_at = None
        return conversation

    def update(self, conversation: WhatsAppConversation, db: Session, **patch) -> WhatsAppConversation:
        """
        Apply a patch (flow, current_step, context, ...) and refresh
        last_message_at. Used for every step transition.
        """
        for field, value in patch.items():
            setattr(conversation, field, value)
        conversation.last_message_at = now_utc()

        self._commit(db)
        logger.info(f"Updated conversation {conversation.phone}: {conversation.flow}/{conversation.current_step}")
        return conversation

    def reset(self, conversation: WhatsAppConversation, db: Session) -> WhatsAppConversation:
        """Back to idle with an empty context (completion, cancel or timeout)."""
        return self.update(conversation, db, flow=None, current_step=IDLE, context={})

    def merge_context(
        self,
        conversation: WhatsAppConversation,
        partial_context: Dict,
        db: Session,
        **patch
    ) -> WhatsAppConversation:
        """
        Shallow-merge partial_context on top of the stored context without
        dropping unrelated keys. Extra keyword arguments are applied as a
        regular patch in the same write.
        """
        merged = {**(conversation.context or {}), **partial_context}
        return self.update(conversation, db, context=merged, **patch)

    def link_to_user(self, conversation: WhatsAppConversation, user_id, db: Session) -> WhatsAppConversation:
        """Link the phone number to a patient account."""
        conversation.user_id = user_id
        self._commit(db)
        logger.info(f"Linked conversation {conversation.phone} to user {user_id}")
        return conversation

    def set_opt_out(self, conversation: WhatsAppConversation, opted_out: bool, db: Session) -> WhatsAppConversation:
        return self.update(conversation, db, opted_out=opted_out)

    @staticmethod
    def _commit(db: Session):
        try:
            db.commit()
        except Exception as e:
            logger.error(f"Error saving conversation state: {e}")
            db.rollback()
            raise


state_manager = ConversationStateManager()
