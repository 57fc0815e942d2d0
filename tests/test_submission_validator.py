import unittest

from core.errors import LanguageServiceError
from core.models import Language
from services.submission_validator import RejectionReason, validate_submission
from tests.fakes import FakeLanguageService


class TestValidateSubmission(unittest.IsolatedAsyncioTestCase):
    async def test_short_text_is_rejected_without_relevance_check(self):
        checker = FakeLanguageService()

        result = await validate_submission("Hallo", Language.DE, "Mein Wochenende", checker, 10, 4000)

        self.assertFalse(result.accepted)
        self.assertEqual(result.reason, RejectionReason.TOO_SHORT)
        self.assertEqual(checker.relevance_calls, [])

    async def test_long_text_is_rejected(self):
        checker = FakeLanguageService()

        result = await validate_submission("a" * 5000, Language.DE, "Mein Wochenende", checker, 10, 4000)

        self.assertEqual(result.reason, RejectionReason.TOO_LONG)
        self.assertEqual(checker.relevance_calls, [])

    async def test_irrelevant_text_is_off_topic(self):
        checker = FakeLanguageService(relevant=False)
        text = "Ich habe heute Pizza gegessen und sie war sehr lecker."

        result = await validate_submission(text, Language.EN, "Mein Wochenende", checker, 10, 4000)

        self.assertEqual(result.reason, RejectionReason.OFF_TOPIC)
        self.assertEqual(checker.relevance_calls, [(text, "Mein Wochenende")])

    async def test_relevant_text_is_accepted(self):
        checker = FakeLanguageService(relevant=True)
        text = "Am Wochenende war ich mit meiner Familie im Park spazieren."

        result = await validate_submission(text, Language.RU, "Mein Wochenende", checker, 10, 4000)

        self.assertTrue(result.accepted)
        self.assertIsNone(result.reason)

    async def test_length_is_measured_after_trimming(self):
        checker = FakeLanguageService()

        result = await validate_submission("   Hallo    \n", Language.DE, "Thema", checker, 10, 4000)

        self.assertEqual(result.reason, RejectionReason.TOO_SHORT)

    async def test_bounds_are_inclusive(self):
        checker = FakeLanguageService()

        self.assertTrue((await validate_submission("a" * 10, Language.DE, "T", checker, 10, 20)).accepted)
        self.assertTrue((await validate_submission("a" * 20, Language.DE, "T", checker, 10, 20)).accepted)

    async def test_relevance_failure_propagates(self):
        checker = FakeLanguageService()
        checker.fail_relevance = True

        with self.assertRaises(LanguageServiceError):
            await validate_submission("a" * 50, Language.DE, "Thema", checker, 10, 4000)


if __name__ == "__main__":
    unittest.main()
