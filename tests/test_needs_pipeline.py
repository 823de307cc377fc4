import threading
import unittest
from unittest.mock import patch

import requests

from conftest import make_sample
from engines import needs_pipeline
from engines.model_analyzer import HttpScoringClient, ScoringResponse
from engines.needs_pipeline import NeedsDetectionPipeline
from engines.needs_types import ATTENTION, LOW_ENGAGEMENT, READING_PROCESSING
from engines.rule_analyzer import analyze_rules
from engines.validation import ValidationError, validate_interaction
from env_validation import EngineSettings


class _FailingResponse:
    status_code = 500

    def json(self):
        return {}

    def raise_for_status(self):
        raise requests.HTTPError(response=self)


class _StaticClient:
    def __init__(self, probabilities, confidence=0.9):
        self.response = ScoringResponse(category_probabilities=probabilities, confidence=confidence)
        self.calls = []

    def score(self, features, cultural_context):
        self.calls.append((features, cultural_context))
        return self.response


class _BlockingClient:
    def __init__(self):
        self.release = threading.Event()

    def score(self, features, cultural_context):
        self.release.wait(5)
        return ScoringResponse(category_probabilities={ATTENTION: 1.0}, confidence=1.0)


def _dyslexia_sample(**overrides):
    return make_sample(
        readingSpeed=40, readingErrors={"reversals": 5, "omissions": 4}, attentionSpan=6, **overrides
    )


class NeedsDetectionPipelineTests(unittest.TestCase):
    def _pipeline(self, client=None, **settings):
        pipeline = NeedsDetectionPipeline(EngineSettings(**settings), client=client)
        self.addCleanup(pipeline.close)
        return pipeline

    def test_http_failure_keeps_rule_categories_in_fallback(self):
        pipeline = self._pipeline(HttpScoringClient("http://model.test/score"))
        sample = _dyslexia_sample()
        rule_categories = {
            label for signal in analyze_rules(validate_interaction(sample)) for label in signal.scores
        }

        with patch("engines.model_analyzer.requests.post", return_value=_FailingResponse()):
            result = pipeline.detect(sample)

        self.assertEqual(result.model_source, "fallback")
        self.assertTrue(result.profile.fallback_used)
        self.assertIn("HTTP 500", result.profile.degraded_reason)
        self.assertTrue(rule_categories)
        self.assertTrue(rule_categories.issubset(result.profile.scores))
        self.assertGreater(result.profile.score(READING_PROCESSING), 0.5)

    def test_model_timeout_falls_back(self):
        pipeline = self._pipeline(HttpScoringClient("http://model.test/score"))

        with patch("engines.model_analyzer.requests.post", side_effect=requests.Timeout("slow")):
            result = pipeline.detect(_dyslexia_sample())

        self.assertEqual(result.model_source, "fallback")
        self.assertIn(ATTENTION, result.profile.scores)

    def test_unresponsive_client_is_abandoned(self):
        client = _BlockingClient()
        pipeline = self._pipeline(client, model_timeout=0.05)

        with patch.object(needs_pipeline, "_JOIN_GRACE", 0.0):
            result = pipeline.detect(_dyslexia_sample())
        client.release.set()

        self.assertEqual(result.model_source, "fallback")
        self.assertIn("did not answer", result.profile.degraded_reason)

    def test_disabled_model_is_never_called(self):
        pipeline = self._pipeline(model_enabled=False)

        with patch("engines.model_analyzer.requests.post") as post:
            result = pipeline.detect(_dyslexia_sample())

        post.assert_not_called()
        self.assertEqual(result.model_source, "fallback")

    def test_model_signals_are_fused(self):
        client = _StaticClient({ATTENTION: 0.95, READING_PROCESSING: 0.1})
        pipeline = self._pipeline(client)

        result = pipeline.detect(_dyslexia_sample())

        self.assertEqual(result.model_source, "hybrid")
        self.assertAlmostEqual(result.profile.score(ATTENTION), 0.95)
        self.assertEqual(result.profile.winning_sources[ATTENTION], "model")
        self.assertGreater(result.profile.score(READING_PROCESSING), 0.5)
        self.assertEqual(len(client.calls), 1)

    def test_cultural_weights_apply_to_rule_scores(self):
        pipeline = self._pipeline(model_enabled=False)
        sample = make_sample(taskCompletion=0.3, helpRequests=0)

        neutral = pipeline.detect(dict(sample, culturalBackground="atlantis"))
        maya = pipeline.detect(dict(sample, culturalBackground="maya"))

        self.assertLess(maya.profile.score(LOW_ENGAGEMENT), neutral.profile.score(LOW_ENGAGEMENT))
        self.assertIn("milpa", maya.cultural_adaptations["contextual_examples"])

    def test_result_carries_learner_profile_and_next_assessment(self):
        result = self._pipeline(model_enabled=False).detect(_dyslexia_sample(mathSpeed=0.4))

        self.assertEqual(result.learner.pace, "slow")
        self.assertIn("Use dyslexia-friendly fonts", result.learner.recommendations)
        self.assertIn(result.next_assessment_days, (7, 14))

    def test_history_is_blended_into_the_vector(self):
        pipeline = self._pipeline(model_enabled=False)
        history = [validate_interaction(make_sample(readingSpeed=100))]

        result = pipeline.detect(make_sample(readingSpeed=40), history=history)

        self.assertAlmostEqual(result.vector.reading_speed, (40 + 0.8 * 100) / 1.8)

    def test_raw_vector_is_kept_alongside_blended_vector(self):
        pipeline = self._pipeline(model_enabled=False)
        history = [validate_interaction(make_sample(readingSpeed=100))]

        result = pipeline.detect(make_sample(readingSpeed=40), history=history)
        fresh = pipeline.detect(make_sample(readingSpeed=40))

        self.assertEqual(result.raw_vector.reading_speed, 40.0)
        self.assertNotEqual(result.vector.reading_speed, 40.0)
        self.assertIs(fresh.raw_vector, fresh.vector)

    def test_invalid_sample_raises_validation_error(self):
        with self.assertRaises(ValidationError):
            self._pipeline(model_enabled=False).detect(make_sample(readingSpeed=-1))


if __name__ == "__main__":
    unittest.main()
