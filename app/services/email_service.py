# Reservation notifications
import resend
from flask import current_app
from typing import Dict


class EmailService:
    """
    Reservation email sender using Resend
    """

    def __init__(self, config):
        """Initialize Resend from the app config"""
        self.from_email = config.get("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = config.get("FRONTEND_URL", "http://localhost:3000")
        self.api_key = config.get("RESEND_API_KEY")
        self.disabled = bool(config.get("TESTING")) or not self.api_key
        if not self.disabled:
            resend.api_key = self.api_key

    def _send(self, to_email, subject, html) -> Dict:
        if self.disabled:
            return {"success": False, "error": "Email disabled"}
        params = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        email_response = resend.Emails.send(params)
        return {"success": True, "email_id": email_response.get("id")}

    def _details(self, appointment):
        items = "".join(
            f"<li>{item.service_name} ({item.duration} min)</li>"
            for item in appointment.items
        )
        return f"""
            <p><strong>Date:</strong> {appointment.date.isoformat()}</p>
            <p><strong>Time:</strong> {appointment.start_time} - {appointment.end_time}</p>
            <ul>{items}</ul>
            <p><strong>Total:</strong> {appointment.total_price - appointment.discount_amount}</p>
            <p><a href="{self.frontend_url}/mypage/reservations/{appointment.id}">View reservation</a></p>
        """

    def send_reservation_confirmation(self, appointment) -> Dict:
        """
        Send reservation confirmation right after booking
        """
        html = f"""
            <html><body>
            <h2>Your reservation is confirmed</h2>
            <p>Hi {appointment.customer_name or 'there'},</p>
            {self._details(appointment)}
            </body></html>
        """
        return self._send(appointment.customer_email, "Reservation confirmed", html)

    def send_reservation_changed(self, appointment) -> Dict:
        html = f"""
            <html><body>
            <h2>Your reservation has been updated</h2>
            {self._details(appointment)}
            </body></html>
        """
        return self._send(appointment.customer_email, "Reservation updated", html)

    def send_reservation_cancelled(self, appointment) -> Dict:
        html = f"""
            <html><body>
            <h2>Your reservation has been cancelled</h2>
            <p>{appointment.date.isoformat()} {appointment.start_time} was cancelled.</p>
            </body></html>
        """
        return self._send(appointment.customer_email, "Reservation cancelled", html)


SENDERS = {
    "created": EmailService.send_reservation_confirmation,
    "changed": EmailService.send_reservation_changed,
    "cancelled": EmailService.send_reservation_cancelled,
}


def notify_reservation(event, appointment):
    """
    Best-effort email after a reservation commit.

    Failures are logged and swallowed; the reservation is already committed
    and must not be affected by the mail provider.
    """
    if not appointment.customer_email:
        return False
    try:
        service = EmailService(current_app.config)
        result = SENDERS[event](service, appointment)
        return result.get("success", False)
    except Exception as e:
        current_app.logger.error(
            f"Failed to send '{event}' email for reservation {appointment.id}: {e}"
        )
        return False
