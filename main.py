# main.py
"""Main entry point for the multi-evaluator ranking engine."""
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.config.settings import Settings
from src.engine import RankingEngine, RecalibrationScheduler
from src.state import JsonStateStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

CONFIG_PATH = Path("config/settings.yaml")


def print_startup_banner(settings: Settings) -> None:
    """Print system startup banner."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name}")
    logger.info(f"Version: {settings.system.version}")
    logger.info("=" * 60)


def load_and_validate_config(config_path: Path = CONFIG_PATH) -> Settings:
    """Load and validate configuration.

    A missing settings file falls back to defaults.

    Returns:
        Settings object.

    Raises:
        SystemExit: If the YAML cannot be parsed or fails validation.
    """
    load_dotenv()
    logger.info("✓ Loaded environment variables")

    if not config_path.exists():
        logger.warning(f"{config_path} not found - using default settings")
        settings = Settings()
    else:
        try:
            settings = Settings.from_yaml(config_path)
            logger.info(f"✓ Settings loaded from {config_path}")
        except Exception as e:
            logger.error(f"Failed to parse {config_path}: {e}")
            sys.exit(1)

    logging.getLogger().setLevel(settings.runtime.log_level.upper())
    return settings


def initialize_engine(settings: Settings) -> tuple[RankingEngine, JsonStateStore]:
    """Build the engine and restore persisted state when present.

    Args:
        settings: Loaded settings object.

    Returns:
        Tuple of (RankingEngine, JsonStateStore).

    Raises:
        SystemExit: If the stored state cannot be restored.
    """
    engine = RankingEngine.from_settings(settings)
    store = JsonStateStore(settings.runtime.state_path)
    logger.info(
        f"✓ Engine initialized ({len(engine.context.normalizer.evaluators())} evaluators, "
        f"{len(engine.context.normalizer.consumer_ids())} consumers)"
    )

    if settings.runtime.persist_state and store.exists():
        try:
            engine.import_state(store.load())
            logger.info(f"✓ State restored from {store.path}")
        except Exception as e:
            logger.error(f"Failed to restore state from {store.path}: {e}")
            sys.exit(1)

    return engine, store


def run_maintenance_pass(engine: RankingEngine) -> None:
    """Recalibrate, prune and rebuild once, then log the top of the leaderboard."""
    recalibration = engine.recalibrate()
    logger.info(
        f"✓ Recalibrated (epoch {recalibration.epoch}, "
        f"updated: {', '.join(recalibration.updated_evaluators) or 'none'})"
    )

    report = engine.validate_consistency()
    if not report.is_consistent:
        logger.warning(f"{len(report.inconsistencies)} consumer weights outside tolerance")

    pruned = engine.prune()
    if pruned.entities:
        logger.info(f"✓ Pruned {len(pruned.entities)} stale entities")

    rebuild = engine.rebuild_leaderboard()
    for entry in rebuild.snapshot.entries[:10]:
        logger.info(
            f"#{entry.rank} {entry.entity_id} {entry.score:.1f} "
            f"(top evaluator: {entry.highlights.top_evaluator})"
        )
    if rebuild.failures:
        logger.warning(f"{len(rebuild.failures)} entities could not be ranked")


def persist_state(engine: RankingEngine, store: JsonStateStore, settings: Settings) -> None:
    """Save engine state if persistence is enabled."""
    if settings.runtime.persist_state:
        store.save(engine.export_state())


async def run_scheduler(engine: RankingEngine, store: JsonStateStore, settings: Settings) -> None:
    """Run periodic recalibration until interrupted, then persist state."""
    scheduler = RecalibrationScheduler(engine, settings.scheduler)
    await scheduler.start()
    try:
        while scheduler.is_running:
            await asyncio.sleep(1)
    finally:
        await scheduler.stop()
        persist_state(engine, store, settings)


def main() -> None:
    settings = load_and_validate_config()
    print_startup_banner(settings)

    engine, store = initialize_engine(settings)
    run_maintenance_pass(engine)
    persist_state(engine, store, settings)

    if settings.scheduler.enabled:
        try:
            asyncio.run(run_scheduler(engine, store, settings))
        except KeyboardInterrupt:
            logger.info("Shutting down")


if __name__ == "__main__":
    main()
