import json
import re
from collections.abc import Mapping

import google.generativeai as genai

from duende import config
from duende.errors import SourceFetchError
from duende.sources.base import EventSource

EVENT_PROMPT_TEMPLATE = (
    'Usando tus herramientas de búsqueda si es necesario, busca conciertos, recitales o '
    'actuaciones importantes del artista de flamenco "{query}" para los próximos 12 meses en '
    'Europa. Devuelve el resultado como un array JSON. Prioriza eventos en teatros, auditorios '
    'y festivales importantes. Si, incluso después de buscar, no encuentras ningún evento '
    'futuro para este artista, devuelve un array JSON vacío, es decir, \'[]\'. La estructura '
    'por evento debe ser: {{ "id": "slug-unico-y-descriptivo", "name": "...", "artist": '
    '"{query}", "description": "...", "date": "YYYY-MM-DD", "time": "HH:MM", "venue": "...", '
    '"city": "...", "country": "...", "verified": boolean }}'
)

REPORT_EVENTS_FUNCTION = "report_events"

_EVENT_PROPERTIES = {
    name: {"type": "STRING"}
    for name in ["id", "name", "artist", "description", "date", "time", "venue", "city", "country"]
}
_EVENT_PROPERTIES["verified"] = {"type": "BOOLEAN"}

REPORT_EVENTS_TOOL = {
    "function_declarations": [
        {
            "name": REPORT_EVENTS_FUNCTION,
            "description": "Report the upcoming events found for the artist.",
            "parameters": {
                "type": "OBJECT",
                "properties": {
                    "events": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": _EVENT_PROPERTIES,
                            "required": ["name", "artist", "date", "city"],
                        },
                    },
                },
                "required": ["events"],
            },
        }
    ]
}

FENCED_BLOCK_RE = re.compile(r"```[a-zA-Z]*\s*(.*?)\s*```", re.DOTALL)
JSON_DECODER = json.JSONDecoder()


def _plain(value):
    """Turn proto-backed maps and repeated fields from the SDK into dicts and lists."""
    if isinstance(value, (str, bytes, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping) or hasattr(value, "items"):
        return {k: _plain(v) for k, v in value.items()}
    try:
        return [_plain(v) for v in value]
    except TypeError:
        return value


def _as_candidates(payload):
    """A JSON array of objects, an {"events": [...]} wrapper, or one object. Anything else is None."""
    if isinstance(payload, dict):
        if isinstance(payload.get("events"), list):
            payload = payload["events"]
        elif payload.keys() & _EVENT_PROPERTIES.keys():
            return [payload]
        else:
            return None
    if not isinstance(payload, list):
        return None
    if not all(isinstance(item, dict) for item in payload):
        return None
    return payload


def _function_call_events(response):
    try:
        parts = response.candidates[0].content.parts
    except (AttributeError, IndexError, TypeError):
        return None

    for part in parts:
        call = getattr(part, "function_call", None)
        if call and getattr(call, "name", None) == REPORT_EVENTS_FUNCTION:
            return _as_candidates(_plain(call.args))
    return None


def _response_text(response):
    try:
        return response.text
    except (AttributeError, ValueError):
        # .text raises ValueError when the reply has no text part
        return None


def decode_text(text):
    """
    Decode a free-text model reply into candidate dicts.
    Reads the first fenced block if there is one, otherwise the first JSON
    array or object in the text, so a sentence before or after the JSON is
    ignored. Prose alone, invalid JSON and non-event payloads give None.
    """
    if not text:
        return None

    fenced = FENCED_BLOCK_RE.search(text)
    cleaned = fenced.group(1) if fenced else text
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i >= 0]
    if not starts:
        return None

    try:
        payload, _ = JSON_DECODER.raw_decode(cleaned, min(starts))
    except ValueError:
        return None
    return _as_candidates(payload)


def decode_response(response):
    """
    Pull event candidates out of a generate_content response.
    Returns a list (possibly empty) of candidate dicts, or None when the reply
    carried no structured output at all.
    """
    events = _function_call_events(response)
    if events is not None:
        return events
    return decode_text(_response_text(response))


class GenerativeSource(EventSource):
    """Ask a Gemini model for upcoming events, one query (artist) at a time."""

    name = "generative"

    def __init__(self, api_key=None, model_name=None, prompt_template=EVENT_PROMPT_TEMPLATE,
                 search=None, structured=None, model=None, log=print):
        self.prompt_template = prompt_template
        self.log = log
        self.structured = config.GEMINI_STRUCTURED if structured is None else structured
        search = config.GEMINI_SEARCH if search is None else search

        if model is None:
            genai.configure(api_key=api_key or config.GEMINI_API_KEY)
            tools = None
            if self.structured:
                tools = [REPORT_EVENTS_TOOL]
            elif search:
                tools = "google_search_retrieval"
            model = genai.GenerativeModel(model_name or config.GEMINI_MODEL, tools=tools)
        self.model = model

    def build_prompt(self, query):
        return self.prompt_template.format(query=query)

    def fetch(self, query):
        try:
            response = self.model.generate_content(self.build_prompt(query))
        except Exception as e:
            raise SourceFetchError(f"Gemini request failed for {query!r}: {e}") from e

        events = decode_response(response)
        if events is None:
            self.log(f"  Response for {query!r} carried no event JSON, skipping", "WARNING")
            return []
        return events
