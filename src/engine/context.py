"""Engine context: every component of one engine instance, owned by the host."""
from dataclasses import dataclass
from datetime import datetime

from src.config.settings import Settings
from src.feedback.feedback_learner import FeedbackLearner
from src.feedback.feedback_log import FeedbackLog
from src.history.score_history import ScoreHistory
from src.leaderboard.leaderboard import Leaderboard
from src.models.evaluator import Evaluator, default_evaluators
from src.scoring.score_engine import ScoreEngine
from src.scoring.temporal_decay import TemporalDecayModel
from src.state.entity_store import EntityStore
from src.weights.weight_normalizer import WeightNormalizer


@dataclass
class EngineContext:
    """Holds the components and shared state of one engine instance.

    Nothing here is process-global; independent contexts never share state.
    """

    settings: Settings
    score_engine: ScoreEngine
    decay: TemporalDecayModel
    learner: FeedbackLearner
    feedback_log: FeedbackLog
    normalizer: WeightNormalizer
    leaderboard: Leaderboard
    history: ScoreHistory
    entities: EntityStore

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        evaluators: dict[str, Evaluator] | None = None,
        now: datetime | None = None,
    ) -> "EngineContext":
        """Build a context from settings.

        Args:
            settings: Engine settings (defaults if None).
            evaluators: Initial evaluators; the default set if None.
            now: Creation timestamp for default evaluators.

        Returns:
            A fresh EngineContext with the configured consumers registered.
        """
        settings = settings or Settings()

        normalizer = WeightNormalizer(
            evaluators=evaluators if evaluators is not None else default_evaluators(now),
            drift_threshold=settings.normalizer.drift_threshold,
            correction_strength=settings.normalizer.correction_strength,
            min_weight=settings.normalizer.min_weight,
            max_weight=settings.normalizer.max_weight,
            consistency_tolerance=settings.normalizer.consistency_tolerance,
            global_min_weight=settings.normalizer.global_min_weight,
            global_max_weight=settings.normalizer.global_max_weight,
            hard_drift_limit=settings.normalizer.hard_drift_limit,
            history_limit=settings.normalizer.history_limit,
        )
        for consumer_id, display_name in settings.normalizer.default_consumers.items():
            normalizer.register_consumer(consumer_id, display_name)
        normalizer.register_consumer(settings.leaderboard.consumer_id)

        leaderboard = Leaderboard(
            normalizer=normalizer,
            consumer_id=settings.leaderboard.consumer_id,
            signal_weights=settings.leaderboard.signal_weights,
            points_per_citation=settings.leaderboard.points_per_citation,
            max_citation_score=settings.leaderboard.max_citation_score,
            response_time_divisor=settings.leaderboard.response_time_divisor,
            min_score=settings.leaderboard.min_score,
            max_entries=settings.leaderboard.max_entries,
            snapshot_limit=settings.leaderboard.snapshot_limit,
            citation_leader_threshold=settings.leaderboard.citation_leader_threshold,
            inclusion_leader_threshold=settings.leaderboard.inclusion_leader_threshold,
            inclusion_majority=settings.leaderboard.inclusion_majority,
            observation_window=settings.leaderboard.observation_window,
        )

        return cls(
            settings=settings,
            score_engine=ScoreEngine(
                category_weights=settings.scoring.category_weights,
                excellent_threshold=settings.scoring.excellent_threshold,
                good_threshold=settings.scoring.good_threshold,
            ),
            decay=TemporalDecayModel(
                decay_period_days=settings.decay.decay_period_days,
                max_degradation=settings.decay.max_degradation,
                max_samples_per_entity=settings.decay.max_samples_per_entity,
            ),
            learner=FeedbackLearner(
                learning_rate=settings.feedback.learning_rate,
                min_data_points=settings.feedback.min_data_points,
                significance_threshold=settings.feedback.significance_threshold,
                min_factor_weight=settings.feedback.min_factor_weight,
                change_type_mapping=settings.feedback.change_type_mapping,
            ),
            feedback_log=FeedbackLog(),
            normalizer=normalizer,
            leaderboard=leaderboard,
            history=ScoreHistory(
                max_points_per_entity=settings.history.max_points_per_entity,
                trend_threshold_percent=settings.history.trend_threshold_percent,
                default_window_days=settings.history.default_window_days,
                top_movers=settings.history.top_movers,
                common_issues=settings.history.common_issues,
                low_score_threshold=settings.history.low_score_threshold,
            ),
            entities=EntityStore(),
        )
