"""TwiML documents returned from the voice webhooks.

Every turn is one of three shapes: play a reply and listen for the next
utterance, play a reply then say goodbye and hang up, or (when no audio
could be produced) speak a fixed line with the provider's own voice and
hang up.
"""

from __future__ import annotations

from xml.etree.ElementTree import Element, SubElement, tostring


def _render(response_el: Element) -> str:
    return tostring(response_el, encoding="unicode", xml_declaration=True)


def gather_and_play(audio_url: str, action_url: str, language: str = "en-US") -> str:
    """Play ``audio_url`` inside a speech Gather that posts back to ``action_url``.

    ``actionOnEmptyResult`` makes silence post an empty SpeechResult
    instead of falling through and ending the call.
    """
    response_el = Element("Response")
    gather_el = SubElement(response_el, "Gather")
    gather_el.set("input", "speech")
    gather_el.set("action", action_url)
    gather_el.set("method", "POST")
    gather_el.set("speechTimeout", "auto")
    gather_el.set("language", language)
    gather_el.set("actionOnEmptyResult", "true")
    play_el = SubElement(gather_el, "Play")
    play_el.text = audio_url
    return _render(response_el)


def play_and_hangup(audio_url: str, closing_line: str = "") -> str:
    response_el = Element("Response")
    play_el = SubElement(response_el, "Play")
    play_el.text = audio_url
    if closing_line:
        say_el = SubElement(response_el, "Say")
        say_el.text = closing_line
    SubElement(response_el, "Hangup")
    return _render(response_el)


def say_and_hangup(text: str) -> str:
    response_el = Element("Response")
    say_el = SubElement(response_el, "Say")
    say_el.text = text
    SubElement(response_el, "Hangup")
    return _render(response_el)
