"""Typer CLI entry point for IVoice."""

from __future__ import annotations

import logging
import mimetypes
import time
from pathlib import Path
from typing import Optional

import typer

from .config import (
    EnvironmentSettingError,
    Settings,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.sounddevice_backend import create_microphone_capture
from .core.connectivity import ConnectivityMonitor
from .core.pipeline.dispatcher import DispatchOutcome, TranslationDispatcher
from .data.history import HistoryStore
from .data.languages import SUPPORTED_LANGUAGES, LanguagePair, UnknownLanguageError, resolve_pair
from .data.profile import EntitlementError, ProfileStore
from .data.storage import KeyValueStore, open_store
from .data.usage import UsageQuotaLedger
from .logging import configure_logging, get_logger
from .services.factory import (
    ServiceConfigurationError,
    resolve_speech_backend,
    resolve_translation_backend,
)

app = typer.Typer(help="IVoice speech, text and image translator")
history_app = typer.Typer(help="Browse and manage translation history")
packs_app = typer.Typer(help="Manage offline language packs")
env_app = typer.Typer(help="Inspect and edit IVOICE_* environment settings")
app.add_typer(history_app, name="history")
app.add_typer(packs_app, name="packs")
app.add_typer(env_app, name="env")

LOGGER = get_logger(__name__)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug details to stderr")) -> None:
    """IVoice speech, text and image translator."""

    configure_logging(logging.DEBUG if verbose else get_settings().log_level, force=True)


def _open_store(settings: Settings) -> KeyValueStore:
    return open_store(settings.database_path)


def _resolve_languages(settings: Settings, mother: Optional[str], target: Optional[str]) -> LanguagePair:
    try:
        return resolve_pair(mother or settings.mother_language, target or settings.target_language)
    except UnknownLanguageError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _build_dispatcher(
    settings: Settings,
    *,
    offline: bool,
    backend: Optional[str],
    device: Optional[str] = None,
) -> TranslationDispatcher:
    store = _open_store(settings)
    connectivity = ConnectivityMonitor(online=False)
    if not offline:
        connectivity.probe(
            settings.connectivity_probe_host,
            settings.connectivity_probe_port,
            settings.connectivity_probe_timeout,
        )
    try:
        translator = resolve_translation_backend(backend or settings.translation_backend)
    except (ServiceConfigurationError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    def capture_factory():
        return create_microphone_capture(
            device=device or settings.default_mic_device,
            sample_rate=settings.sample_rate,
            channels=settings.channels,
            block_size=settings.block_size,
        )

    return TranslationDispatcher(
        translator=translator,
        history=HistoryStore(store, limit=settings.history_limit),
        ledger=UsageQuotaLedger(store, daily_limit=settings.daily_free_quota),
        connectivity=connectivity,
        entitlements=ProfileStore(store, is_premium=settings.premium),
        capture_factory=capture_factory,
        settings=settings,
    )


def _report(outcome: DispatchOutcome) -> None:
    if outcome.failure is not None:
        typer.echo(outcome.failure.message, err=True)
        raise typer.Exit(code=1)
    result = outcome.result
    if result is None:
        return
    if outcome.offline:
        typer.echo("(offline dictionary)")
    typer.echo(f"Detected: {result.detected_language}")
    typer.echo(f"Original: {result.original_text}")
    typer.echo(f"Translation: {result.translated_text}")
    if result.phonetic:
        typer.echo(f"Phonetic: {result.phonetic}")


@app.command()
def languages() -> None:
    """List supported languages."""

    for language in SUPPORTED_LANGUAGES:
        typer.echo(f"{language.code}  {language.flag}  {language.name} ({language.native_name})")


@app.command()
def text(
    content: str = typer.Argument(..., help="Text to translate"),
    mother: Optional[str] = typer.Option(None, help="Mother language code"),
    target: Optional[str] = typer.Option(None, help="Target language code"),
    offline: bool = typer.Option(False, "--offline", help="Skip the network and use offline packs"),
    backend: Optional[str] = typer.Option(None, help="Translation backend: openai/dummy"),
) -> None:
    """Translate typed text."""

    settings = get_settings()
    pair = _resolve_languages(settings, mother, target)
    if not content.strip():
        raise typer.BadParameter("Nothing to translate")
    dispatcher = _build_dispatcher(settings, offline=offline, backend=backend)
    try:
        _report(dispatcher.submit_text(content, pair))
    finally:
        dispatcher.close()


@app.command()
def image(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image to scan"),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", help="Override the detected image type"),
    mother: Optional[str] = typer.Option(None, help="Mother language code"),
    target: Optional[str] = typer.Option(None, help="Target language code"),
    offline: bool = typer.Option(False, "--offline", help="Skip the network"),
    backend: Optional[str] = typer.Option(None, help="Translation backend: openai/dummy"),
) -> None:
    """Extract and translate the text visible in an image."""

    settings = get_settings()
    pair = _resolve_languages(settings, mother, target)
    resolved_mime = mime_type or mimetypes.guess_type(path.name)[0] or "image/jpeg"
    dispatcher = _build_dispatcher(settings, offline=offline, backend=backend)
    try:
        _report(dispatcher.submit_image(path.read_bytes(), resolved_mime, pair))
    finally:
        dispatcher.close()


@app.command()
def voice(
    mother: Optional[str] = typer.Option(None, help="Mother language code"),
    target: Optional[str] = typer.Option(None, help="Target language code"),
    duration: Optional[float] = typer.Option(None, help="Seconds to record; default waits for Enter"),
    sensitivity: Optional[float] = typer.Option(None, help="Microphone gain multiplier"),
    volume: Optional[float] = typer.Option(None, help="Playback volume between 0 and 1"),
    speak: bool = typer.Option(True, "--speak/--no-speak", help="Read the translation aloud"),
    device: Optional[str] = typer.Option(None, help="Input device id/name"),
    offline: bool = typer.Option(False, "--offline", help="Skip the network and use offline packs"),
    backend: Optional[str] = typer.Option(None, help="Translation backend: openai/dummy"),
) -> None:
    """Record speech and translate it."""

    settings = get_settings()
    pair = _resolve_languages(settings, mother, target)
    dispatcher = _build_dispatcher(settings, offline=offline, backend=backend, device=device)
    try:
        refused = dispatcher.start_voice(pair, sensitivity=sensitivity, speak_back=speak)
        if refused is not None:
            _report(refused)
        if duration is not None:
            time.sleep(max(duration, 0.0))
        else:
            try:
                input("Recording... press Enter to stop. ")
            except (KeyboardInterrupt, EOFError):
                typer.echo()
        pending = dispatcher.stop_voice()
        if pending is None:
            raise typer.Exit(code=1)
        outcome = pending.result()
        if outcome.speech is not None:
            speaker = resolve_speech_backend(settings.speech_backend)
            speaker.speak(
                outcome.speech.text,
                outcome.speech.locale,
                settings.volume if volume is None else volume,
            )
        _report(outcome)
    finally:
        dispatcher.close()


@app.command()
def usage() -> None:
    """Show today's cloud translation usage."""

    settings = get_settings()
    store = _open_store(settings)
    ledger = UsageQuotaLedger(store, daily_limit=settings.daily_free_quota)
    current = ledger.usage()
    if settings.premium:
        typer.echo(f"{current.date}: premium, unlimited translations")
        return
    typer.echo(f"{current.date}: {current.count}/{ledger.daily_limit} free translations used")


@history_app.command("list")
def history_list(limit: Optional[int] = typer.Option(None, help="Show at most this many items")) -> None:
    """Show past translations, newest first."""

    settings = get_settings()
    items = HistoryStore(_open_store(settings), limit=settings.history_limit).list()
    if limit is not None:
        items = items[: max(limit, 0)]
    if not items:
        typer.echo("History is empty.")
        return
    for item in items:
        stamp = time.strftime("%Y-%m-%d %H:%M", time.localtime(item.timestamp / 1000))
        typer.echo(
            f"{item.id}  {stamp}  {item.target_lang_flag} {item.original_text} -> {item.translated_text}"
        )


@history_app.command("delete")
def history_delete(item_id: str = typer.Argument(..., help="History item id")) -> None:
    """Delete one history item."""

    settings = get_settings()
    history = HistoryStore(_open_store(settings), limit=settings.history_limit)
    if not history.remove(item_id):
        typer.echo(f"No history item with id {item_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Deleted.")


@history_app.command("replay")
def history_replay(
    item_id: str = typer.Argument(..., help="History item id"),
    volume: Optional[float] = typer.Option(None, help="Playback volume between 0 and 1"),
) -> None:
    """Read a past translation aloud again."""

    settings = get_settings()
    item = HistoryStore(_open_store(settings), limit=settings.history_limit).get(item_id)
    if item is None:
        typer.echo(f"No history item with id {item_id}", err=True)
        raise typer.Exit(code=1)
    try:
        speaker = resolve_speech_backend(settings.speech_backend)
    except ServiceConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"{item.target_lang_flag} {item.translated_text}")
    speaker.speak(item.translated_text, item.target_lang_locale, settings.volume if volume is None else volume)


@history_app.command("clear")
def history_clear(yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")) -> None:
    """Delete all history."""

    if not yes and not typer.confirm("Clear history?"):
        raise typer.Abort()
    settings = get_settings()
    HistoryStore(_open_store(settings), limit=settings.history_limit).clear()
    typer.echo("History cleared.")


@packs_app.command("list")
def packs_list() -> None:
    """List offline language packs."""

    settings = get_settings()
    profile = ProfileStore(_open_store(settings), is_premium=settings.premium)
    for pack in profile.list_packs():
        marker = "downloaded" if pack.is_downloaded else "available"
        typer.echo(f"{pack.code}  {pack.name}  {pack.size}  {marker}")


@packs_app.command("download")
def packs_download(code: str = typer.Argument(..., help="Language code")) -> None:
    """Download a language pack for offline use."""

    settings = get_settings()
    profile = ProfileStore(_open_store(settings), is_premium=settings.premium)
    try:
        pack = profile.download_pack(code)
    except UnknownLanguageError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except EntitlementError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"{pack.name} is ready for offline use.")


@packs_app.command("remove")
def packs_remove(code: str = typer.Argument(..., help="Language code")) -> None:
    """Remove a downloaded language pack."""

    settings = get_settings()
    profile = ProfileStore(_open_store(settings), is_premium=settings.premium)
    try:
        removed = profile.remove_pack(code)
    except UnknownLanguageError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo("Removed." if removed else "Pack was not downloaded.")


@env_app.command("list")
def env_list() -> None:
    """Show environment-backed settings."""

    for entry in list_environment_settings():
        typer.echo(f"{entry.env_name}={entry.value!s}  (default: {entry.default!s})")


@env_app.command("set")
def env_set(field: str, value: str) -> None:
    """Persist a setting override to .env."""

    try:
        update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Updated {field}.")


@env_app.command("clear")
def env_clear(field: str) -> None:
    """Remove a setting override from .env."""

    try:
        clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Cleared {field}.")


if __name__ == "__main__":  # pragma: no cover
    app()
