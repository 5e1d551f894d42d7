"""CLI entry point for the journal analytics engine."""

from __future__ import annotations

import json
from pathlib import Path

import click

from .core.config import Settings, load_settings
from .core.errors import JournalError
from .observability.logger import get_logger, new_trace_id, setup_logging

log = get_logger(__name__)


def _engine(settings: Settings, store_path: str | None):
    from .journal.engine import AnalyticsEngine
    from .journal.stores import JsonKeyValueStore, LocalJournalStore

    storage = settings.storage
    store = LocalJournalStore(
        JsonKeyValueStore(store_path or storage.store_path),
        trades_key=storage.trades_key,
        metadata_key=storage.metadata_key,
        strategies_key=storage.strategies_key,
    )
    return AnalyticsEngine(
        store,
        store,
        store,
        starting_balance=settings.analytics.starting_balance,
        default_timezone=settings.analytics.default_timezone,
    )


def _emit(result) -> None:
    from .journal.export import ReportExporter

    click.echo(ReportExporter().to_json(result))


def _load_rules_file(path: Path) -> dict:
    if path.suffix == ".toml":
        import tomli

        with open(path, "rb") as f:
            return tomli.load(f)
    return json.loads(path.read_text(encoding="utf-8"))


@click.group()
@click.option("--config", default=None, help="TOML settings file")
@click.pass_context
def main(ctx: click.Context, config: str | None) -> None:
    """Trading journal analytics."""
    try:
        settings = load_settings(config)
    except JournalError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(settings.observability.log_level, settings.observability.log_format)
    trace_id = new_trace_id()
    log.debug("cli_started", command=ctx.invoked_subcommand, trace_id=trace_id)
    ctx.obj = settings


@main.command()
@click.option("--store", "store_path", default=None, help="Journal store JSON file")
@click.option("--model", "model_id", default=None, help="Restrict to one strategy model")
@click.pass_obj
def report(settings: Settings, store_path: str | None, model_id: str | None) -> None:
    """Metrics, R-multiples and time series for the journal."""
    try:
        result = _engine(settings, store_path).report(model_id)
    except JournalError as exc:
        log.error("report_failed", error=str(exc))
        raise click.ClickException(str(exc)) from exc
    log.info("report_built", model_id=model_id, trades=result["metrics"].total)
    _emit(result)


@main.command()
@click.argument("trades_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False))
def rules(trades_file: str, rules_file: str) -> None:
    """Evaluate an auto-rules config (JSON or TOML) against a trades JSON file."""
    from pydantic import ValidationError

    from .core.errors import MalformedTradeError
    from .journal.auto_rules import AutoRulesConfig, evaluate_auto_rules
    from .journal.record import Trade

    try:
        rows = json.loads(Path(trades_file).read_text(encoding="utf-8"))
        raw = _load_rules_file(Path(rules_file))
    except ValueError as exc:
        raise click.ClickException(f"Cannot parse input: {exc}") from exc
    if not isinstance(rows, list):
        raise click.ClickException("trades file must hold a JSON list")

    try:
        config = AutoRulesConfig.model_validate(raw)
    except ValidationError as exc:
        raise click.ClickException(f"Invalid auto rules: {exc}") from exc

    trades = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            trades.append(Trade.from_dict(row))
        except MalformedTradeError as exc:
            log.warning("trade_skipped", reason=str(exc))

    summary = evaluate_auto_rules(trades, config)
    log.info("rules_evaluated", trades=summary.total_trades, days=summary.total_days)
    _emit(summary)


@main.command()
@click.option("--store", "store_path", default=None, help="Journal store JSON file")
@click.option("--model", "model_id", required=True, help="Strategy model id")
@click.pass_obj
def compliance(settings: Settings, store_path: str | None, model_id: str) -> None:
    """Per-rule follow rates and performance for a model's playbook."""
    try:
        result = _engine(settings, store_path).compliance(model_id)
    except JournalError as exc:
        log.error("compliance_failed", error=str(exc))
        raise click.ClickException(str(exc)) from exc
    _emit(result)


if __name__ == "__main__":
    main()
