"""
Fixed chat copy for the WhatsApp bot (plain text, not Meta templates).
"""
from typing import Dict, List, Optional
from clinic_bot.core.config import settings

MENU_HINT = '_Type "menu" to go back to the main menu._'

STATUS_EMOJI = {
    "pending": "🟡",
    "approved": "🟢",
    "rejected": "🔴",
    "rescheduled": "🔵",
    "completed": "✅",
    "cancelled": "⚫",
}


class BotMessages:
    """Conversation messages"""

    @staticmethod
    def welcome(name: Optional[str] = None) -> str:
        greeting = f"Hello {name}! 👋" if name else "Hello! 👋"
        return (
            f"{greeting}\n\n"
            f"Welcome to *{settings.CLINIC_NAME}*\n\n"
            "We provide individualised homoeopathic care with evidence-oriented, ethical practice.\n\n"
            "How can I help you today?"
        )

    @staticmethod
    def main_menu() -> str:
        return (
            "What would you like to do?\n\n"
            "1️⃣ *Book an Appointment*\n"
            "2️⃣ *Check Appointment Status*\n"
            "3️⃣ *Cancel an Appointment*\n"
            "4️⃣ *Reschedule an Appointment*\n"
            "5️⃣ *Get Help*\n\n"
            "_Reply with a number or tap a button below._"
        )

    @staticmethod
    def ask_name() -> str:
        return "Please share your *full name* for the appointment.\n\n_Example: Rahul Sharma_"

    @staticmethod
    def ask_email(name: Optional[str] = None) -> str:
        prefix = f"Thanks, *{name}*! 👍\n\n" if name else ""
        return (
            f"{prefix}Please share your *email address*.\n\n"
            "This will be used for appointment confirmations and to access your patient portal.\n\n"
            "_Example: rahul@email.com_"
        )

    @staticmethod
    def ask_reason() -> str:
        return (
            "What is the *reason for your visit*?\n\n"
            "You can briefly describe your health concern or choose from common reasons:\n\n"
            "• General Consultation\n"
            "• Skin Condition\n"
            "• Digestive Issues\n"
            "• Joint/Muscle Pain\n"
            "• Respiratory Issues\n"
            "• Mental/Emotional Health\n"
            "• Follow-up Visit\n\n"
            "_Type your reason or select from above._"
        )

    @staticmethod
    def welcome_back(name: str) -> str:
        return f"Welcome back, *{name}*! 😊\n\nLet's book your appointment.\n\n{BotMessages.ask_reason()}"

    @staticmethod
    def ask_date() -> str:
        return (
            "Please share your *preferred date* for the appointment.\n\n"
            "_Format: DD/MM/YYYY_\n"
            "_Example: 28/02/2026_\n\n"
            "📅 Clinic hours: Monday to Saturday, 9 AM to 5 PM\n"
            "🚫 Closed on Sundays"
        )

    @staticmethod
    def invalid_booking_date(horizon_days: int) -> str:
        return BotMessages.invalid_input(
            "Please enter a valid future date in DD/MM/YYYY format.\n\n"
            "• Must be a weekday (Monday–Saturday)\n"
            "• Cannot be in the past\n"
            f"• Cannot be more than {horizon_days} days ahead\n\n"
            "_Example: 28/02/2026_"
        )

    @staticmethod
    def available_slots(formatted_date: str) -> str:
        return f"📅 Available slots for *{formatted_date}*\n\nSelect your preferred time:"

    @staticmethod
    def confirm_booking(data: Dict) -> str:
        return (
            "📋 *Appointment Summary*\n\n"
            f"👤 *Name:* {data.get('name')}\n"
            f"📧 *Email:* {data.get('email')}\n"
            f"📅 *Date:* {data.get('date')}\n"
            f"🕐 *Time:* {data.get('time')}\n"
            f"📝 *Reason:* {data.get('reason')}\n\n"
            "Would you like to confirm this appointment?"
        )

    @staticmethod
    def booking_success(date: str, time: str) -> str:
        return (
            "✅ *Appointment Booked Successfully!*\n\n"
            f"Your appointment has been scheduled for *{date}* at *{time}*.\n\n"
            "📌 *What happens next:*\n"
            "• Our team will review your appointment\n"
            "• You'll receive a confirmation once a doctor is assigned\n"
            "• We'll send you a reminder before your appointment\n\n"
            "💡 You can check your appointment status anytime by messaging us.\n\n"
            f"_Thank you for choosing {settings.CLINIC_NAME}!_"
        )

    @staticmethod
    def booking_failed() -> str:
        return (
            "❌ Sorry, we couldn't book your appointment at this time.\n\n"
            "Please try again or contact us directly:\n"
            f"📞 {settings.CLINIC_PHONE}\n\n"
            f"{MENU_HINT}"
        )

    @staticmethod
    def booking_cancelled() -> str:
        return 'Appointment booking cancelled. No worries!\n\n_Type "menu" to see other options._'

    @staticmethod
    def status_report(appointments: List[Dict]) -> str:
        if not appointments:
            return (
                "📋 *No Appointments Found*\n\n"
                "We couldn't find any upcoming appointments linked to your account.\n\n"
                "💡 Would you like to book a new appointment?\n\n"
                f"{MENU_HINT}"
            )

        lines = ["📋 *Your Appointments*\n"]
        for i, apt in enumerate(appointments, start=1):
            status = apt["status"]
            lines.append(f"{i}. {STATUS_EMOJI.get(status, '⚪')} *{status.capitalize()}*")
            lines.append(f"   📅 {apt['formatted_date']}")
            if apt.get("doctor_name"):
                lines.append(f"   👨‍⚕️ Dr. {apt['doctor_name']}")
            if apt.get("reason"):
                lines.append(f"   📝 {apt['reason']}")
            lines.append("")
        lines.append(MENU_HINT)
        return "\n".join(lines)

    @staticmethod
    def ask_status_email() -> str:
        return (
            "I couldn't find an account linked to this number.\n\n"
            "Please share the *email address* you used when booking your appointment."
        )

    @staticmethod
    def no_account_for_email() -> str:
        return (
            "No account found with that email.\n\n"
            'Would you like to book an appointment instead? Reply "book" to get started.\n\n'
            '_Type "menu" for main menu._'
        )

    @staticmethod
    def no_account() -> str:
        return (
            "I couldn't find an account linked to this number.\n\n"
            "Please book an appointment first or contact us directly.\n\n"
            '_Type "menu" for main menu._'
        )

    @staticmethod
    def no_active_appointments(action: str) -> str:
        return f"You don't have any active appointments to {action}.\n\n_Type \"menu\" for main menu._"

    @staticmethod
    def cancel_select_appointment() -> str:
        return "Which appointment would you like to cancel? Select from the list:"

    @staticmethod
    def cancel_confirmation(date: str) -> str:
        return f"Are you sure you want to *cancel* your appointment on *{date}*?\n\n⚠️ This action cannot be undone."

    @staticmethod
    def cancel_success() -> str:
        return (
            "✅ Your appointment has been cancelled successfully.\n\n"
            "If you'd like to rebook, just let us know!\n\n"
            f"{MENU_HINT}"
        )

    @staticmethod
    def cancel_aborted() -> str:
        return "Appointment cancellation aborted. Your appointment is still active.\n\n_Type \"menu\" for main menu._"

    @staticmethod
    def cancel_failed() -> str:
        return (
            "Sorry, we couldn't cancel the appointment. Please try again or contact us.\n\n"
            '_Type "menu" for main menu._'
        )

    @staticmethod
    def reschedule_select_appointment() -> str:
        return "Which appointment would you like to reschedule? Select from the list:"

    @staticmethod
    def invalid_reschedule_date() -> str:
        return BotMessages.invalid_input(
            "Please enter a valid date in DD/MM/YYYY format.\n\n"
            "Date must be today or later and a weekday (Monday–Saturday)."
        )

    @staticmethod
    def reschedule_slots(formatted_date: str) -> str:
        return f"Select your new time slot for *{formatted_date}*:"

    @staticmethod
    def reschedule_confirmation(date: str, time: str) -> str:
        return f"Reschedule to *{date}* at *{time}*?"

    @staticmethod
    def reschedule_success(date: str, time: str) -> str:
        return (
            "✅ *Appointment Rescheduled!*\n\n"
            f"Your appointment has been moved to *{date}* at *{time}*.\n\n"
            "Our team will review the change and confirm shortly.\n\n"
            f"{MENU_HINT}"
        )

    @staticmethod
    def reschedule_aborted() -> str:
        return "Reschedule cancelled. Your appointment remains as is.\n\n_Type \"menu\" for main menu._"

    @staticmethod
    def reschedule_failed() -> str:
        return (
            "Sorry, we couldn't reschedule the appointment. Please try again or contact us.\n\n"
            '_Type "menu" for main menu._'
        )

    @staticmethod
    def please_confirm() -> str:
        return "Please confirm or cancel your appointment."

    @staticmethod
    def invalid_input(expected: str) -> str:
        return (
            "❌ Sorry, I didn't understand that.\n\n"
            f"{expected}\n\n"
            '_Type "menu" to go back to the main menu or "cancel" to stop._'
        )

    @staticmethod
    def help() -> str:
        return (
            f"ℹ️ *Help — {settings.CLINIC_NAME}*\n\n"
            "Here's what I can help you with:\n\n"
            "🔹 *Book Appointment* — Schedule a new consultation\n"
            "🔹 *Check Status* — View your upcoming appointments\n"
            "🔹 *Cancel Appointment* — Cancel a scheduled visit\n"
            "🔹 *Reschedule* — Change your appointment date/time\n\n"
            f"📞 *Contact Us:* {settings.CLINIC_PHONE}\n\n"
            "🏥 *Clinic Hours:*\n"
            "Monday — Saturday: 9:00 AM — 5:00 PM\n"
            "Sunday: Closed\n\n"
            '_Type "menu" to see options or type "book" to schedule an appointment._'
        )

    @staticmethod
    def session_expired() -> str:
        return '⏰ Your session has timed out due to inactivity.\n\n_Type "hi" or "menu" to start again._'

    @staticmethod
    def unsupported() -> str:
        return (
            "Sorry, I can only process text messages and button/list selections at the moment.\n\n"
            '_Type "menu" to see what I can help with._'
        )

    @staticmethod
    def flow_cancelled() -> str:
        return 'Current action cancelled.\n\n_Type "menu" to see options._'

    @staticmethod
    def start_over() -> str:
        return "Something went wrong. Let's start over."

    @staticmethod
    def generic_error() -> str:
        return 'Sorry, something went wrong. Please try again.\n\n_Type "menu" to start over._'

    @staticmethod
    def opted_out() -> str:
        return (
            "You have been unsubscribed from WhatsApp reminders. 🔕\n\n"
            '_Type "start" at any time to receive them again._'
        )


class NotificationMessages:
    """Plain-text notifications for system events (also the template fallback)"""

    @staticmethod
    def appointment_confirmed(params: Dict) -> str:
        return (
            "✅ *Appointment Confirmed!*\n\n"
            f"Hi {params.get('patient_name')}, your appointment has been confirmed!\n\n"
            f"📅 *Date:* {params.get('date')}\n"
            f"🕐 *Time:* {params.get('time')}\n"
            f"👨‍⚕️ *Doctor:* Dr. {params.get('doctor_name')}\n\n"
            "📍 Please arrive 10 minutes before your scheduled time.\n\n"
            '_Reply "status" to view your appointments._'
        )

    @staticmethod
    def appointment_rejected(params: Dict) -> str:
        reason = f"📝 *Reason:* {params['reason']}\n\n" if params.get("reason") else ""
        return (
            "❌ *Appointment Update*\n\n"
            f"Hi {params.get('patient_name')}, unfortunately your appointment for *{params.get('date')}* "
            "could not be confirmed.\n\n"
            f"{reason}"
            'Would you like to book a different date? Reply "book" to schedule a new appointment.'
        )

    @staticmethod
    def appointment_rescheduled(params: Dict) -> str:
        return (
            "🔄 *Appointment Rescheduled*\n\n"
            f"Hi {params.get('patient_name')}, your appointment has been rescheduled.\n\n"
            f"❌ *Previous:* {params.get('old_date')}\n"
            f"✅ *New Date:* {params.get('new_date')} at {params.get('new_time')}\n\n"
            '_Reply "status" to view your updated appointments._'
        )

    @staticmethod
    def appointment_cancelled(params: Dict) -> str:
        return (
            "⚫ *Appointment Cancelled*\n\n"
            f"Hi {params.get('patient_name')}, your appointment on *{params.get('date')}* has been cancelled.\n\n"
            'Would you like to book a new appointment? Reply "book" to get started.'
        )

    @staticmethod
    def reminder_24h(params: Dict) -> str:
        doctor = f"👨‍⚕️ *Doctor:* Dr. {params['doctor_name']}\n" if params.get("doctor_name") else ""
        return (
            "⏰ *Appointment Reminder*\n\n"
            f"Hi {params.get('patient_name')}, this is a reminder that you have an appointment *tomorrow*.\n\n"
            f"📅 *Date:* {params.get('date')}\n"
            f"🕐 *Time:* {params.get('time')}\n"
            f"{doctor}\n"
            "📍 Please arrive 10 minutes early.\n"
            "📋 Bring any previous medical reports if available.\n\n"
            '_Reply "status" for details or "reschedule" to change the time._'
        )

    @staticmethod
    def reminder_1h(params: Dict) -> str:
        doctor = f" with Dr. {params['doctor_name']}" if params.get("doctor_name") else ""
        return (
            "⏰ *Appointment in 1 Hour*\n\n"
            f"Hi {params.get('patient_name')}, your appointment is in *1 hour* at *{params.get('time')}*{doctor}.\n\n"
            "📍 Please make your way to the clinic.\n\n"
            "_See you soon!_"
        )

    @staticmethod
    def prescription_ready(params: Dict) -> str:
        return (
            "💊 *Prescription Ready*\n\n"
            f"Hi {params.get('patient_name')}, your prescription from Dr. {params.get('doctor_name')} is ready.\n\n"
            f"📋 *{params.get('medication_count')} medication(s)* prescribed.\n\n"
            "Your medicines will be prepared by our pharmacist. We'll notify you when they're ready for pickup.\n\n"
            '_Reply "status" to view your appointments._'
        )

    @staticmethod
    def prescription_dispensed(params: Dict) -> str:
        return (
            "✅ *Medicines Dispensed*\n\n"
            f"Hi {params.get('patient_name')}, your medicines have been dispensed and are ready for pickup.\n\n"
            "💊 *Medications:*\n"
            f"{params.get('medication_summary')}\n\n"
            "📋 Please follow the dosage instructions provided by your doctor.\n\n"
            f"_For any questions, contact us at {settings.CLINIC_PHONE}._"
        )

    @staticmethod
    def follow_up(params: Dict) -> str:
        doctor = f" with Dr. {params['doctor_name']}" if params.get("doctor_name") else ""
        return (
            "👋 *Follow-up Reminder*\n\n"
            f"Hi {params.get('patient_name')}, it's been *{params.get('days_since')} days* "
            f"since your last consultation{doctor}.\n\n"
            "We hope you're feeling better! If you need a follow-up, we're here to help.\n\n"
            'Would you like to book a follow-up appointment? Reply "book" to schedule.\n\n'
            f"_{settings.CLINIC_NAME}_"
        )

    @staticmethod
    def missed_appointment(params: Dict) -> str:
        return (
            "📅 *We Missed You*\n\n"
            f"Hi {params.get('patient_name')}, we missed you at your appointment on *{params.get('date')}*.\n\n"
            f'Reply "book" to schedule a new visit or call us at {settings.CLINIC_PHONE}.'
        )

    @staticmethod
    def welcome(params: Dict) -> str:
        return BotMessages.welcome(params.get("patient_name"))
