"""
Internationalization (i18n) module for the URL moderator.

Every message written into the shared last-error slot, and every line the
CLI prints, comes from this catalogue. Spanish is the console's default
language; English is the alternative.
"""

from typing import Optional


SUPPORTED_LANGUAGES = frozenset({"es", "en"})
DEFAULT_LANGUAGE = "es"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # URL records
    "url.not_found": {
        "es": "URL no encontrada",
        "en": "URL not found",
    },
    "url.fetch_failed": {
        "es": "Error al obtener URLs: {error}",
        "en": "Failed to fetch URLs: {error}",
    },
    "url.add_failed": {
        "es": "Error al añadir URL: {error}",
        "en": "Failed to add URL: {error}",
    },
    "url.approve_failed": {
        "es": "Error al aprobar URL: {error}",
        "en": "Failed to approve URL: {error}",
    },
    "url.reject_failed": {
        "es": "Error al rechazar URL: {error}",
        "en": "Failed to reject URL: {error}",
    },
    "url.remove_error_failed": {
        "es": "Error al eliminar el mensaje de error: {error}",
        "en": "Failed to remove error message: {error}",
    },
    "url.error_index_out_of_range": {
        "es": "No existe un mensaje de error en la posición {index}",
        "en": "There is no error message at position {index}",
    },
    "url.query_failed": {
        "es": "Error al consultar URLs: {error}",
        "en": "Failed to query URLs: {error}",
    },

    # Visits
    "visit.record_failed": {
        "es": "Error al registrar la visita: {error}",
        "en": "Failed to record visit: {error}",
    },

    # Domain order
    "domain_order.empty": {
        "es": "El orden de dominios no puede estar vacío",
        "en": "The domain order cannot be empty",
    },
    "domain_order.load_failed": {
        "es": "Error al cargar el orden de dominios: {error}",
        "en": "Failed to load the domain order: {error}",
    },
    "domain_order.save_failed": {
        "es": "Error al guardar el orden de dominios: {error}",
        "en": "Failed to save the domain order: {error}",
    },

    # Error annotation
    "annotation.no_target": {
        "es": "No hay ninguna URL seleccionada",
        "en": "No URL is selected",
    },
    "annotation.nothing_staged": {
        "es": "No hay mensajes de error pendientes",
        "en": "There are no pending error messages",
    },

    # Image upload
    "upload.failed": {
        "es": "Error en la subida: {error}",
        "en": "Upload failed: {error}",
    },

    # Themes
    "theme.empty_name": {
        "es": "El nombre del tema no puede estar vacío",
        "en": "The theme name cannot be empty",
    },
    "theme.init_failed": {
        "es": "Error al inicializar temas: {error}",
        "en": "Failed to initialize themes: {error}",
    },
    "theme.load_failed": {
        "es": "Error al cargar temas guardados: {error}",
        "en": "Failed to load saved themes: {error}",
    },
    "theme.save_failed": {
        "es": "Error al guardar tema: {error}",
        "en": "Failed to save theme: {error}",
    },
    "theme.preference_failed": {
        "es": "Error al guardar la preferencia de tema: {error}",
        "en": "Failed to save the theme preference: {error}",
    },

    # Authentication
    "auth.unauthorized": {
        "es": "No tienes autorización para acceder ({email}). "
              "Contacta con el administrador para solicitar acceso.",
        "en": "You are not authorized to access ({email}). "
              "Contact the administrator to request access.",
    },

    # Status labels
    "status.pending": {
        "es": "Pendiente",
        "en": "Pending",
    },
    "status.approved": {
        "es": "Aprobada",
        "en": "Approved",
    },
    "status.rejected": {
        "es": "Rechazada",
        "en": "Rejected",
    },

    # CLI
    "cli.no_urls": {
        "es": "No hay URLs registradas.",
        "en": "No URLs registered.",
    },
    "cli.added": {
        "es": "URL añadida con id {id}",
        "en": "URL added with id {id}",
    },
    "cli.done": {
        "es": "Hecho.",
        "en": "Done.",
    },
    "cli.failed": {
        "es": "La operación falló: {error}",
        "en": "Operation failed: {error}",
    },
    "cli.config_error": {
        "es": "Error de configuración: {error}",
        "en": "Configuration error: {error}",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'url.not_found')
        language: Language code ('es' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.

    Examples:
        >>> get_message('url.not_found', 'en')
        'URL not found'
        >>> get_message('url.error_index_out_of_range', 'es', index=3)
        'No existe un mensaje de error en la posición 3'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            pass

    return message


def get_missing_translations(language: str) -> set[str]:
    """Get all message keys that are missing translations for a language."""
    return {
        key
        for key, translations in TRANSLATIONS.items()
        if language not in translations
    }


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    return {language: get_missing_translations(language) for language in SUPPORTED_LANGUAGES}
