"""Static user-facing texts, per language."""

from typing import Optional

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("nl", "en", "de", "fr", "es")

MSG_START = "start"
MSG_LANG_HELP = "lang_help"
MSG_LANGUAGE_SET = "language_set"
MSG_EMPTY_TEXT = "empty_text"
MSG_RUN_FAILED = "run_failed"
MSG_EMPTY_REPLY = "empty_reply"

_LANG_CODES = " ".join(f"/{code}" for code in SUPPORTED_LANGUAGES)

REPLIES = {
    "en": {
        MSG_START: "Hi, I'm Lothis ✨ Just send me a message and I'll answer.\n"
        "Want me to use a specific language? Send /lang.",
        MSG_LANG_HELP: f"Choose a language by sending one of: {_LANG_CODES}",
        MSG_LANGUAGE_SET: "✅ English set.",
        MSG_EMPTY_TEXT: "Please send me a text message.",
        MSG_RUN_FAILED: "I’m having a brief hiccup. Please try again in a moment.",
        MSG_EMPTY_REPLY: "I heard you, but didn’t get a good reply back. Can you try again?",
    },
    "nl": {
        MSG_START: "Hoi, ik ben Lothis ✨ Stuur me een bericht en ik antwoord.\n"
        "Wil je dat ik een bepaalde taal gebruik? Stuur /lang.",
        MSG_LANG_HELP: f"Kies een taal door een van deze te sturen: {_LANG_CODES}",
        MSG_LANGUAGE_SET: "✅ Nederlands ingesteld.",
        MSG_EMPTY_TEXT: "Stuur me alsjeblieft een tekstbericht.",
        MSG_RUN_FAILED: "Ik heb even een hikje. Probeer het zo nog eens.",
        MSG_EMPTY_REPLY: "Ik heb je gehoord, maar kreeg geen goed antwoord terug. Probeer je het nog eens?",
    },
    "de": {
        MSG_START: "Hallo, ich bin Lothis ✨ Schick mir einfach eine Nachricht.\n"
        "Soll ich eine bestimmte Sprache verwenden? Sende /lang.",
        MSG_LANG_HELP: f"Wähle eine Sprache, indem du eines davon sendest: {_LANG_CODES}",
        MSG_LANGUAGE_SET: "✅ Deutsch eingestellt.",
        MSG_EMPTY_TEXT: "Bitte schick mir eine Textnachricht.",
        MSG_RUN_FAILED: "Ich habe gerade einen kleinen Aussetzer. Bitte versuch es gleich noch einmal.",
        MSG_EMPTY_REPLY: "Ich habe dich gehört, aber keine gute Antwort bekommen. Versuchst du es noch einmal?",
    },
    "fr": {
        MSG_START: "Bonjour, je suis Lothis ✨ Envoie-moi un message et je te réponds.\n"
        "Tu veux que j'utilise une langue précise ? Envoie /lang.",
        MSG_LANG_HELP: f"Choisis une langue en envoyant l'un de ces codes : {_LANG_CODES}",
        MSG_LANGUAGE_SET: "✅ Français activé.",
        MSG_EMPTY_TEXT: "Envoie-moi un message texte, s'il te plaît.",
        MSG_RUN_FAILED: "J'ai un petit souci. Réessaie dans un instant.",
        MSG_EMPTY_REPLY: "Je t'ai entendu, mais je n'ai pas obtenu de bonne réponse. Tu peux réessayer ?",
    },
    "es": {
        MSG_START: "Hola, soy Lothis ✨ Envíame un mensaje y te respondo.\n"
        "¿Quieres que use un idioma concreto? Envía /lang.",
        MSG_LANG_HELP: f"Elige un idioma enviando uno de estos: {_LANG_CODES}",
        MSG_LANGUAGE_SET: "✅ Español configurado.",
        MSG_EMPTY_TEXT: "Por favor, envíame un mensaje de texto.",
        MSG_RUN_FAILED: "Tengo un pequeño problema. Inténtalo de nuevo en un momento.",
        MSG_EMPTY_REPLY: "Te escuché, pero no obtuve una buena respuesta. ¿Puedes intentarlo de nuevo?",
    },
}


def get_reply(key: str, language: Optional[str]) -> str:
    """Reply text in the given language, falling back to English."""
    table = REPLIES.get(language or DEFAULT_LANGUAGE) or REPLIES[DEFAULT_LANGUAGE]
    return table[key]
