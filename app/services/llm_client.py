import logging
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview")


def get_chat_model():
    """Returns a configured Chat Model based on LLM_PROVIDER env variable."""
    if LLM_PROVIDER.lower() == "google":
        return _get_google_model()
    return _get_openai_model()


def _get_google_model():
    """Configuración para Google Gemini."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    google_api_key = os.getenv("GOOGLE_API_KEY")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY not found in environment variables")

    logger.info("Usando modelo Google: %s", GEMINI_MODEL)

    return ChatGoogleGenerativeAI(
        model=GEMINI_MODEL,
        temperature=0,
        google_api_key=google_api_key
    )


def _get_openai_model():
    """Configuración para OpenAI."""
    from langchain_openai import ChatOpenAI

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        logger.warning("OPENAI_API_KEY not found in environment variables")

    logger.info("Usando modelo OpenAI: %s", OPENAI_MODEL)

    return ChatOpenAI(
        model=OPENAI_MODEL,
        temperature=0,
        openai_api_key=openai_api_key
    )
