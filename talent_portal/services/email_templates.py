"""
Static HTML templates for transactional email.

Each template is (subject, body). Placeholders use str.format syntax and
are filled by render(), which HTML-escapes every value.
"""

import html
from typing import Dict, Tuple

_WRAPPER = (
    '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
    "{content}"
    "</div>"
)

_BUTTON = (
    '<div style="text-align: center; margin: 30px 0;">'
    '<a href="{url}" style="display: inline-block; padding: 15px 40px; background: #7c3aed; '
    'color: white; text-decoration: none; border-radius: 10px; font-weight: bold;">{label}</a>'
    "</div>"
)


def _button(url_key: str, label: str) -> str:
    return _BUTTON.replace("{url}", "{" + url_key + "}").replace("{label}", label)


TEMPLATES: Dict[str, Tuple[str, str]] = {
    "magic_link": (
        "Tu enlace de acceso al Portal de Empleos",
        "<h1 style=\"color: #7c3aed;\">Portal de Empleos</h1>"
        "<p>Hola, haz clic en el siguiente enlace para acceder a tu cuenta:</p>"
        + _button("magic_link_url", "Acceder al Portal") +
        "<p style=\"font-size: 14px; color: #999;\">Este enlace expira en 24 horas.</p>"
    ),
    "interview_confirmed": (
        "Entrevista Confirmada",
        "<h1 style=\"color: #7c3aed;\">¡Entrevista Confirmada!</h1>"
        "<p>Hola {nombre},</p>"
        "<p>Tu entrevista ha sido agendada con éxito.</p>"
        "<p><strong>Posición:</strong> {posicion}</p>"
        "<p><strong>Tienda:</strong> {tienda}</p>"
        "<p><strong>Fecha:</strong> {fecha}</p>"
        "<p><strong>Hora:</strong> {hora}</p>"
        "<p>Por favor llega 10 minutos antes. No olvides traer tu DNI.</p>"
    ),
    "rescue_notification": (
        "¡Tu perfil ha sido seleccionado!",
        "<h1 style=\"color: #7c3aed;\">¡Buenas noticias!</h1>"
        "<p>Hola {nombre},</p>"
        "<p>El Gerente de Tienda ha revisado tu perfil y te ha seleccionado para una entrevista.</p>"
        "<p><strong>Posición:</strong> {posicion}</p>"
        "<p>Ahora puedes agendar tu entrevista:</p>"
        + _button("schedule_url", "Agendar Entrevista") +
        "<p style=\"font-size: 14px; color: #999;\">Este enlace expira en 24 horas.</p>"
    ),
    "application": (
        "¡Felicitaciones! Continúa tu proceso en {company}",
        "<h1>¡Hola {nombre}!</h1>"
        "<p>Has sido preseleccionado(a). Completa tu postulación en el siguiente enlace:</p>"
        + _button("link", "Continuar mi proceso")
    ),
    "application_received": (
        "Recibimos tu postulación - {posicion}",
        "<h1>¡Gracias por postular, {nombre}!</h1>"
        "<p>Recibimos tu postulación para <strong>{posicion}</strong> en {company}.</p>"
        "<p>Te contactaremos pronto con los siguientes pasos.</p>"
    ),
    "invitation": (
        "Invitación para postular a {posicion} en {marca}",
        "<h1>¡Hola {nombre}!</h1>"
        "<p>{marca} te invita a postular a la posición <strong>{posicion}</strong> en {tienda}.</p>"
        + _button("link", "Postular ahora")
    ),
    "registration": (
        "¡Registro Exitoso en {company}!",
        "<h1>¡Bienvenido(a), {nombre}!</h1>"
        "<p>Tu registro en {company} se completó correctamente.</p>"
        + _button("link", "Ver vacantes")
    ),
    "rejection": (
        "Actualización sobre tu postulación en {company}",
        "<p>Hola {nombre},</p>"
        "<p>Gracias por tu interés en la posición <strong>{posicion}</strong>. "
        "En esta ocasión hemos decidido continuar con otros candidatos.</p>"
        "<p>Te animamos a postular a futuras vacantes.</p>"
    ),
    "selection": (
        "¡Continúas en el proceso de selección de {company}!",
        "<h1>¡Felicitaciones, {nombre}!</h1>"
        "<p>Has sido seleccionado(a) para continuar en el proceso de <strong>{posicion}</strong>.</p>"
        "<p>Pronto te contactaremos con los siguientes pasos.</p>"
    ),
    "welcome": (
        "¡Bienvenido(a) a {company}!",
        "<h1>¡Bienvenido(a), {nombre}!</h1>"
        "<p>Nos alegra que te unas como <strong>{posicion}</strong>.</p>"
        "<p>Tu fecha de inicio es <strong>{start_date}</strong>.</p>"
    ),
    "exit_survey": (
        "Tu opinión es muy importante para {company}",
        "<p>Hola {nombre},</p>"
        "<p>Queremos conocer tu experiencia trabajando en {company}. La encuesta es confidencial.</p>"
        + _button("link", "Responder encuesta")
    ),
    "cul_request": (
        "Solicitud de CUL - {company}",
        "<p>Hola {nombre},</p>"
        "<p>Para continuar con tu proceso necesitamos tu Certificado Único Laboral (CUL).</p>"
        + _button("link", "Subir mi CUL")
    ),
    "onboarding": (
        "¡Bienvenido(a) a {company} - Confirmación de Ingreso!",
        "<h1>¡Felicitaciones, {nombre}!</h1>"
        "<p>Tu ingreso como <strong>{posicion}</strong> en {tienda} ha sido confirmado.</p>"
        "<p>Fecha de ingreso: <strong>{start_date}</strong></p>"
        + _button("link", "Completar mi registro")
    ),
    "password_reset": (
        "Restablece tu contraseña",
        "<p>Recibimos una solicitud para restablecer tu contraseña.</p>"
        + _button("reset_url", "Restablecer contraseña") +
        "<p style=\"font-size: 14px; color: #999;\">Si no fuiste tú, ignora este mensaje.</p>"
    ),
    "rq_pending": (
        "Requerimiento Pendiente de Aprobación - {posicion}",
        "<p>Hola {nombre},</p>"
        "<p>El requerimiento <strong>{rq_number}</strong> ({posicion}, {tienda}) espera tu aprobación.</p>"
        + _button("link", "Revisar requerimiento")
    ),
    "interview_booking": (
        "Agenda tu entrevista - {posicion}",
        "<p>Hola {nombre},</p>"
        "<p>{entrevistador} quiere conversar contigo sobre la posición <strong>{posicion}</strong>.</p>"
        "<p>Elige el horario que mejor te acomode:</p>"
        + _button("link", "Elegir horario")
    ),
    "interview_scheduled": (
        "Entrevista agendada - {posicion}",
        "<p>Hola {nombre},</p>"
        "<p>Tu entrevista para <strong>{posicion}</strong> quedó agendada.</p>"
        "<p><strong>Fecha:</strong> {fecha}</p>"
        "<p><strong>Hora:</strong> {hora}</p>"
        "<p><strong>Entrevistador:</strong> {entrevistador}</p>"
    ),
    "rq_rejected": (
        "Requerimiento Rechazado - {posicion}",
        "<p>Hola {nombre},</p>"
        "<p>El requerimiento <strong>{rq_number}</strong> fue rechazado.</p>"
        "<p><strong>Motivo:</strong> {reason}</p>"
    ),
}


class _EscapingDict(dict):
    """Missing keys render as empty strings; values are HTML-escaped."""

    def __missing__(self, key):
        return ""


def render(template: str, **values) -> Tuple[str, str]:
    """
    Fill a template. Returns (subject, html).

    Usage:
        subject, body = render("magic_link", magic_link_url=url)
    """
    subject_tpl, body_tpl = TEMPLATES[template]
    escaped = _EscapingDict({k: html.escape(str(v)) if v is not None else "" for k, v in values.items()})
    # Subjects are plain text
    plain = _EscapingDict({k: str(v) if v is not None else "" for k, v in values.items()})
    subject = subject_tpl.format_map(plain)
    body = _WRAPPER.replace("{content}", body_tpl.format_map(escaped))
    return subject, body
