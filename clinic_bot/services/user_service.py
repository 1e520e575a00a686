from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from clinic_bot.core.utils import normalize_phone, phone_variants, parse_uuid
from clinic_bot.models.user import User, UserRole
from clinic_bot.models.conversation import WhatsAppConversation
import logging

logger = logging.getLogger(__name__)

class UserService:

    def get(self, user_id, db: Session) -> Optional[User]:
        user_id = parse_uuid(user_id)
        if not user_id:
            return None
        return db.query(User).filter(User.id == user_id).first()

    def find_by_email(self, email: str, db: Session) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    def find_by_phone(self, phone: str, db: Session) -> Optional[User]:
        """Match the phone on file under any of its usual formats"""
        for variant in phone_variants(phone):
            user = db.query(User).filter(User.phone == variant).first()
            if user:
                return user
        return None

    def find_for_conversation(self, conversation: WhatsAppConversation, db: Session) -> Optional[User]:
        """
        Resolve the patient behind a conversation: the linked account first,
        then the sender's phone number.
        """
        if conversation.user_id:
            user = self.get(conversation.user_id, db)
            if user:
                return user
        return self.find_by_phone(conversation.phone, db)

    def resolve_patient(self, name: str, email: str, phone: str, db: Session) -> Tuple[User, bool]:
        """
        Find the patient by email or create one.

        Returns:
            (user, created)
        """
        email = email.strip().lower()
        phone = normalize_phone(phone)

        user = self.find_by_email(email, db)
        if user:
            if normalize_phone(user.phone or "") != phone:
                user.phone = phone
                db.commit()
                logger.info(f"Updated phone on file for user {user.id}")
            return user, False

        user = User(
            full_name=name,
            email=email,
            phone=phone,
            role=UserRole.PATIENT,
            is_active=True,
        )
        try:
            db.add(user)
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            raise

        logger.info(f"✅ Patient created via WhatsApp: {user.id}")
        return user, True

    def active_admins(self, db: Session) -> List[User]:
        return db.query(User).filter(
            User.role == UserRole.ADMIN,
            User.is_active.is_(True)
        ).all()


user_service = UserService()
