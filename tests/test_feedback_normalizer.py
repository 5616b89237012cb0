import json
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from resumind.normalize import aliases  # noqa: E402
from resumind.normalize.feedback import (  # noqa: E402
    coerce_score,
    extract_json_from_text,
    feedback_to_payload,
    normalize_feedback,
    recover_object,
)


class FeedbackNormalizerTests(unittest.TestCase):
    def test_missing_input_returns_none(self):
        self.assertIsNone(normalize_feedback(None))
        self.assertIsNone(normalize_feedback(""))
        self.assertIsNone(normalize_feedback("   \n"))

    def test_scores_are_clamped_and_non_numeric_defaults_to_zero(self):
        feedback = normalize_feedback(
            {
                "overall_rating": 150,
                "toneAndStyle": {"score": -20},
                "content": {"score": "abc"},
                "structure": {"score": float("nan")},
                "skills": {"score": "85"},
                "ats": {"score": 1e9},
            }
        )
        self.assertEqual(feedback.overall_rating, 100.0)
        self.assertEqual(feedback.tone_and_style.score, 0.0)
        self.assertEqual(feedback.content.score, 0.0)
        self.assertEqual(feedback.structure.score, 0.0)
        self.assertEqual(feedback.skills.score, 85.0)
        self.assertEqual(feedback.ats.score, 100.0)

    def test_blank_tips_are_dropped(self):
        feedback = normalize_feedback({"content": {"score": 50, "tips": ["  ", "Improve summary", {"tip": ""}]}})
        self.assertEqual(len(feedback.content.tips), 1)
        tip = feedback.content.tips[0]
        self.assertEqual(tip.text, "Improve summary")
        self.assertEqual(tip.kind, "improve")
        self.assertIsNone(tip.explanation)

    def test_overall_falls_back_to_category_mean(self):
        feedback = normalize_feedback(
            {
                "toneAndStyle": {"score": 80},
                "content": {"score": 60},
                "structure": {"score": 40},
                "skills": {"score": 100},
            }
        )
        self.assertEqual(feedback.overall_rating, 70.0)

    def test_mean_rounds_half_up_to_one_decimal(self):
        feedback = normalize_feedback(
            {"toneAndStyle": 80, "content": 61, "structure": 40, "skills": 100}
        )
        # (80 + 61 + 40 + 100) / 4 = 70.25
        self.assertEqual(feedback.overall_rating, 70.3)

    def test_embedded_json_in_prose_is_recovered(self):
        feedback = normalize_feedback('Here is feedback: {"content":{"score":90}} end')
        self.assertEqual(feedback.content.score, 90.0)
        self.assertEqual(feedback.tone_and_style.score, 0.0)
        self.assertEqual(feedback.structure.score, 0.0)
        self.assertEqual(feedback.skills.score, 0.0)
        self.assertEqual(feedback.ats.score, 0.0)

    def test_plain_prose_yields_defaulted_feedback(self):
        feedback = normalize_feedback("The resume looks fine overall, no structured data here.")
        self.assertIsNotNone(feedback)
        self.assertEqual(feedback.overall_rating, 0.0)
        self.assertEqual(feedback.content.tips, [])
        self.assertEqual(recover_object("no json"), {"rawText": "no json"})

    def test_non_object_json_yields_defaults(self):
        feedback = normalize_feedback("[1, 2, 3]")
        self.assertEqual(feedback.overall_rating, 0.0)
        self.assertEqual(feedback.skills.score, 0.0)

    def test_category_aliases_and_score_aliases(self):
        feedback = normalize_feedback(
            {
                "tone_and_style": {"rating": 72, "suggestions": ["Use active voice"]},
                "categories": {"format": {"points": "64/100", "items": [{"text": "Clear headings", "type": "good"}]}},
                "skills_match": {"outOf100": "55%"},
                "contentQuality": {"value": 81},
            }
        )
        self.assertEqual(feedback.tone_and_style.score, 72.0)
        self.assertEqual(feedback.tone_and_style.tips[0].text, "Use active voice")
        self.assertEqual(feedback.structure.score, 64.0)
        self.assertEqual(feedback.structure.tips[0].kind, "good")
        self.assertEqual(feedback.skills.score, 55.0)
        self.assertEqual(feedback.content.score, 81.0)

    def test_tip_kind_only_good_when_explicit(self):
        feedback = normalize_feedback(
            {
                "skills": {
                    "tips": [
                        {"type": "GOOD", "tip": "Python listed", "explanation": "Matches the role"},
                        {"type": "strength", "tip": "Cloud exposure"},
                        {"tip": "Add Kubernetes", "explanation": "   "},
                    ]
                }
            }
        )
        kinds = [tip.kind for tip in feedback.skills.tips]
        self.assertEqual(kinds, ["good", "improve", "improve"])
        self.assertEqual(feedback.skills.tips[0].explanation, "Matches the role")
        self.assertIsNone(feedback.skills.tips[2].explanation)

    def test_ats_section_from_issue_lists_and_missing_keywords(self):
        feedback = normalize_feedback(
            {
                "ats_compatibility": "68",
                "ats_issues": ["Tables are hard to parse", " "],
                "missing_keywords": ["Docker", "", "Terraform"],
                "overall_rating": 71,
            }
        )
        self.assertEqual(feedback.ats.score, 68.0)
        texts = [tip.text for tip in feedback.ats.suggestions]
        self.assertEqual(texts, ["Tables are hard to parse", "Add keyword: Docker", "Add keyword: Terraform"])
        self.assertTrue(all(tip.kind == "improve" for tip in feedback.ats.suggestions))

    def test_missing_ats_score_defaults_to_zero_not_overall(self):
        feedback = normalize_feedback({"overall_rating": 88})
        self.assertEqual(feedback.overall_rating, 88.0)
        self.assertEqual(feedback.ats.score, 0.0)

    def test_flat_strength_and_weakness_lists_fill_content_tips(self):
        feedback = normalize_feedback(
            {
                "overallScore": 65,
                "strengths": ["Quantified impact"],
                "weaknesses": ["Summary is vague"],
                "recommendations": ["Lead with results"],
            }
        )
        self.assertEqual(
            [(tip.kind, tip.text) for tip in feedback.content.tips],
            [("good", "Quantified impact"), ("improve", "Summary is vague"), ("improve", "Lead with results")],
        )

    def test_normalizing_canonical_payload_is_stable(self):
        raw = json.dumps(
            {
                "ats_score": 77,
                "missing_keywords": ["GraphQL"],
                "toneAndStyle": {"score": 80, "tips": [{"type": "good", "tip": "Confident tone", "explanation": "x"}]},
                "content": {"score": 61.25, "tips": ["Add metrics"]},
                "structure": {"score": 40},
                "skills": {"score": 100, "tips": []},
            }
        )
        first = normalize_feedback(raw)
        second = normalize_feedback(json.dumps(feedback_to_payload(first)))
        self.assertEqual(first, second)
        self.assertEqual(normalize_feedback(feedback_to_payload(first)), first)

    def test_payload_uses_camel_case_keys(self):
        payload = feedback_to_payload(normalize_feedback({"overall_rating": 50}))
        self.assertEqual(
            set(payload),
            {"overallRating", "ats", "toneAndStyle", "content", "structure", "skills"},
        )
        self.assertEqual(payload["ats"], {"score": 0.0, "suggestions": []})

    def test_deeply_nested_text_degrades_instead_of_raising(self):
        feedback = normalize_feedback("[" * 100000)
        self.assertIsNotNone(feedback)
        self.assertEqual(feedback.overall_rating, 0.0)

        embedded = normalize_feedback("Result: " + '{"a": ' * 100000 + "1" + "}" * 100000)
        self.assertEqual(embedded.overall_rating, 0.0)
        self.assertEqual(recover_object("[" * 100000), {"rawText": "[" * 100000})

    def test_huge_integer_score_clamps_without_losing_siblings(self):
        raw = '{"overallRating": 80, "toneAndStyle": {"score": 55}, "content": {"score": 1' + "0" * 400 + "}}"
        feedback = normalize_feedback(raw)
        self.assertEqual(feedback.content.score, 100.0)
        self.assertEqual(feedback.overall_rating, 80.0)
        self.assertEqual(feedback.tone_and_style.score, 55.0)
        self.assertEqual(coerce_score(-(10**400)), -1000.0)

    def test_one_unreadable_field_keeps_the_others(self):
        with patch("resumind.normalize.feedback._ats", side_effect=RuntimeError("boom")):
            feedback = normalize_feedback({"overall_rating": 66, "skills": {"score": 90}, "ats_score": 40})
        self.assertEqual(feedback.overall_rating, 66.0)
        self.assertEqual(feedback.skills.score, 90.0)
        self.assertEqual(feedback.ats.score, 0.0)

    def test_tip_text_falls_through_non_string_aliases(self):
        feedback = normalize_feedback(
            {"content": {"tips": [{"tip": {"nested": "x"}, "text": "Lead with impact", "explanation": ["x"], "message": "Why"}]}}
        )
        self.assertEqual(len(feedback.content.tips), 1)
        self.assertEqual(feedback.content.tips[0].text, "Lead with impact")

    def test_helpers(self):
        self.assertIsNone(extract_json_from_text("no braces"))
        self.assertIsNone(extract_json_from_text("} backwards {"))
        self.assertEqual(extract_json_from_text('x {"a": 1} y'), {"a": 1})
        self.assertIsNone(coerce_score(True))
        self.assertIsNone(coerce_score(float("inf")))
        self.assertEqual(coerce_score(" 42 "), 42.0)


class AliasTableTests(unittest.TestCase):
    def test_first_defined_respects_priority(self):
        source = {"rating": 10, "score": 20}
        self.assertEqual(aliases.first_defined(source, aliases.SCORE_ALIASES), 20)

    def test_nested_key_accessor(self):
        accessor = aliases.key("ats", "score")
        self.assertEqual(accessor({"ats": {"score": 5}}), 5)
        self.assertIsNone(accessor({"ats": 5}))
        self.assertIsNone(accessor("text"))

    def test_category_alias_tables_cover_every_category(self):
        self.assertEqual(set(aliases.CATEGORY_ALIASES), {"toneAndStyle", "content", "structure", "skills"})
        sample = {"sections": {"tone": {"score": 12}}}
        self.assertEqual(aliases.first_defined(sample, aliases.CATEGORY_ALIASES["toneAndStyle"]), {"score": 12})

    def test_broken_accessor_counts_as_miss(self):
        def broken(_source):
            raise KeyError("boom")

        self.assertEqual(aliases.first_defined({}, (broken, lambda _s: 3)), 3)


if __name__ == "__main__":
    unittest.main()
