"""
User-facing strings in every supported interface language.
"""

import logging
from typing import Dict

from core.models import Language

logger = logging.getLogger(__name__)

LANGUAGE_BUTTONS = [
    (Language.EN, "🇬🇧 English"),
    (Language.RU, "🇷🇺 Русский"),
    (Language.DE, "🇩🇪 Deutsch"),
]

MESSAGES: Dict[str, Dict[Language, str]] = {
    "language_select": {
        Language.EN: "Please choose your language / Выберите язык / Wähle deine Sprache:",
        Language.RU: "Please choose your language / Выберите язык / Wähle deine Sprache:",
        Language.DE: "Please choose your language / Выберите язык / Wähle deine Sprache:",
    },
    "language_confirmation": {
        Language.EN: "Great, I'll talk to you in English.",
        Language.RU: "Отлично, теперь я буду общаться с вами по-русски.",
        Language.DE: "Super, ab jetzt spreche ich Deutsch mit dir.",
    },
    "first_assignment_intro": {
        Language.EN: "Now I'm going to give you your first assignment!",
        Language.RU: "А теперь — ваше первое задание!",
        Language.DE: "Und jetzt bekommst du deine erste Aufgabe!",
    },
    "assignment_text": {
        Language.EN: (
            "📝 Your topic: {title}\n\n"
            "{description}\n\n"
            "Useful words: {keywords}\n\n"
            "Write a short essay in German and send it as a message or a photo."
        ),
        Language.RU: (
            "📝 Ваша тема: {title}\n\n"
            "{description}\n\n"
            "Полезные слова: {keywords}\n\n"
            "Напишите небольшое сочинение на немецком и пришлите его текстом или фотографией."
        ),
        Language.DE: (
            "📝 Dein Thema: {title}\n\n"
            "{description}\n\n"
            "Nützliche Wörter: {keywords}\n\n"
            "Schreib einen kurzen Aufsatz auf Deutsch und schick ihn als Nachricht oder Foto."
        ),
    },
    "button_another_topic": {
        Language.EN: "I want another one",
        Language.RU: "Хочу другую тему",
        Language.DE: "Ich möchte ein anderes Thema",
    },
    "button_next_assignment": {
        Language.EN: "I'm done, give me another",
        Language.RU: "Готово, давай следующее",
        Language.DE: "Fertig, gib mir die nächste",
    },
    "submission_too_short": {
        Language.EN: "Your text is too short. Please write at least {min_length} characters.",
        Language.RU: "Текст слишком короткий. Напишите хотя бы {min_length} символов.",
        Language.DE: "Dein Text ist zu kurz. Bitte schreib mindestens {min_length} Zeichen.",
    },
    "submission_too_long": {
        Language.EN: "Your text is too long. Please keep it under {max_length} characters.",
        Language.RU: "Текст слишком длинный. Уложитесь в {max_length} символов.",
        Language.DE: "Dein Text ist zu lang. Bitte bleib unter {max_length} Zeichen.",
    },
    "submission_off_topic": {
        Language.EN: "It looks like your text is not about the topic \"{topic}\". Please try again.",
        Language.RU: "Похоже, ваш текст не на тему «{topic}». Попробуйте ещё раз.",
        Language.DE: "Dein Text scheint nicht zum Thema „{topic}“ zu passen. Versuch es noch einmal.",
    },
    "feedback": {
        Language.EN: "{feedback}\n\nWould you like a new assignment?",
        Language.RU: "{feedback}\n\nХотите новое задание?",
        Language.DE: "{feedback}\n\nMöchtest du eine neue Aufgabe?",
    },
    "extracted_text": {
        Language.EN: "Here's the text I read from your photo:\n\n{text}",
        Language.RU: "Вот текст, который я распознал на фото:\n\n{text}",
        Language.DE: "Das habe ich auf deinem Foto gelesen:\n\n{text}",
    },
    "photo_unreadable": {
        Language.EN: "Couldn't extract text from the image. Please try again.",
        Language.RU: "Не удалось распознать текст на фото. Попробуйте ещё раз.",
        Language.DE: "Ich konnte auf dem Bild keinen Text erkennen. Versuch es bitte noch einmal.",
    },
    "service_unavailable": {
        Language.EN: "Something went wrong on my side. Please send it again in a moment.",
        Language.RU: "Что-то пошло не так. Пожалуйста, отправьте ещё раз чуть позже.",
        Language.DE: "Da ist etwas schiefgelaufen. Bitte schick es gleich noch einmal.",
    },
    "no_assignment": {
        Language.EN: "You don't have an assignment yet. Send /start to get one.",
        Language.RU: "У вас пока нет задания. Отправьте /start, чтобы получить его.",
        Language.DE: "Du hast noch keine Aufgabe. Schick /start, um eine zu bekommen.",
    },
    "next_assignment_done": {
        Language.EN: "Ok, here's your new assignment.",
        Language.RU: "Хорошо, вот ваше новое задание.",
        Language.DE: "Okay, hier ist deine neue Aufgabe.",
    },
    "next_assignment_cancelled": {
        Language.EN: "I understand you don't want this one. Let's assign you another.",
        Language.RU: "Понимаю, эта тема не подходит. Давайте выберем другую.",
        Language.DE: "Verstehe, dieses Thema passt dir nicht. Hier ist ein anderes.",
    },
    "topics_exhausted": {
        Language.EN: "You've written about every topic I have. New topics are coming soon!",
        Language.RU: "Вы написали сочинения на все темы, которые у меня есть. Скоро появятся новые!",
        Language.DE: "Du hast schon über alle meine Themen geschrieben. Bald gibt es neue!",
    },
}


class Localizer:
    """Looks up user-facing strings by key and language."""

    def __init__(self, messages: Dict[str, Dict[Language, str]] = None):
        self.messages = messages or MESSAGES

    def text(self, key: str, language: Language, **kwargs) -> str:
        """
        Return the message for key in language, formatted with kwargs.

        Falls back to English when a translation is missing. Raises KeyError
        for an unknown key.
        """
        translations = self.messages[key]
        template = translations.get(language)
        if template is None:
            logger.warning(f"Missing {language.value} translation for '{key}'")
            template = translations[Language.EN]
        return template.format(**kwargs) if kwargs else template
