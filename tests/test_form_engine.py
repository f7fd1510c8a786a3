"""FormEngine tests against the shipped assessment forms.

Covers the three concerns of the engine:
  - visibility: visible_if chains, group children, restore after toggling
  - validation: inclusive bounds, required, hidden-field exemption,
    option membership, exclusive conflicts, regex, dates, unknown ids
  - scoring: section sums, scored: false sections, interpretations

Answer writes (exclusive multiselect) and version checks are covered at
the end.
"""

import pytest

from neuro_intake.errors import VersionMismatchError
from neuro_intake.form_engine import FormEngine

# Barthel maximum in every item (100) and Lawton fully independent (8)
FULL_BARTHEL = {
    "adl_feeding": 10, "adl_bathing": 5, "adl_grooming": 5, "adl_dressing": 10,
    "adl_bowel": 10, "adl_bladder": 10, "adl_toilet": 10, "adl_transfer": 15,
    "adl_mobility": 15, "adl_stairs": 10,
}
FULL_LAWTON = {
    "iadl_phone": 1, "iadl_shopping": 1, "iadl_food": 1, "iadl_housework": 1,
    "iadl_laundry": 1, "iadl_transport": 1, "iadl_meds": 1, "iadl_finance": 1,
}

V4_REQUIRED = {"delivery_date": "2026-03-01", "birth_weight": 3200}


@pytest.fixture
def fe():
    return FormEngine()


@pytest.fixture
def v4(store):
    return store.get_form("EPILEPSY_V4")


def _reasons(evaluation):
    return {f.field_id: f.reason for f in evaluation.validation_failures}


# =====================================================================
# Visibility
# =====================================================================


class TestVisibility:

    def test_low_birth_weight_info_follows_birth_weight(self, fe, v4):
        heavy = fe.visible_field_ids(v4, {"birth_weight": 3200})
        light = fe.visible_field_ids(v4, {"birth_weight": 2000})
        assert "is_low_birth_weight" not in heavy, "3200g is not low birth weight"
        assert "is_low_birth_weight" in light, "2000g should reveal the info field"

    def test_unanswered_reference_keeps_dependent_hidden(self, fe, v4):
        visible = fe.visible_field_ids(v4, {})
        assert "is_low_birth_weight" not in visible
        assert "malformation_desc" not in visible

    def test_bool_choice_controls_description(self, fe, v4):
        assert "malformation_desc" in fe.visible_field_ids(v4, {"has_malformation": True})
        assert "malformation_desc" not in fe.visible_field_ids(v4, {"has_malformation": False})

    def test_chain_hides_and_restores(self, fe, store):
        v5 = store.get_form("EPILEPSY_V5")
        answers = {"ddst_completed": True, "ddst_result": "ABNORMAL"}
        assert {"ddst_result", "ddst_abnormal_desc"} <= set(fe.visible_field_ids(v5, answers))

        # Hiding the root hides the whole chain even though ddst_result is still stored
        answers["ddst_completed"] = False
        visible = set(fe.visible_field_ids(v5, answers))
        assert "ddst_result" not in visible
        assert "ddst_abnormal_desc" not in visible, "Stale hidden answer must not reveal dependents"

        answers["ddst_completed"] = True
        assert {"ddst_result", "ddst_abnormal_desc"} <= set(fe.visible_field_ids(v5, answers))

    def test_numeric_gt_predicate(self, fe, store):
        v1 = store.get_form("EPILEPSY_V1")
        assert "max_duration" not in fe.visible_field_ids(v1, {"gtcs_count": 0})
        assert "max_duration" in fe.visible_field_ids(v1, {"gtcs_count": 2})

    def test_conjunction_inside_group(self, fe, store):
        v1 = store.get_form("EPILEPSY_V1")
        answers = {"pregnancy_outcome": "ABORTION", "abortion_type": "SPONTANEOUS"}
        visible = fe.visible_field_ids(v1, answers)
        assert "abortion_type" in visible
        assert "abortion_reason_medical" not in visible

        answers["abortion_type"] = "INDUCED_MEDICAL"
        assert "abortion_reason_medical" in fe.visible_field_ids(v1, answers)

    def test_group_children_visible_with_group(self, fe, store):
        cdr = store.get_form("cdr_informant")
        visible = fe.visible_field_ids(cdr, {})
        assert "inf_memory_group" in visible
        assert "cdr_mem_1" in visible
        assert "cdr_mem_2" not in visible, "cdr_mem_2 depends on cdr_mem_1 == 1"
        assert "cdr_mem_2" in fe.visible_field_ids(cdr, {"cdr_mem_1": 1})


# =====================================================================
# Validation
# =====================================================================


class TestValidation:

    @pytest.mark.parametrize("value", [0, 5, 10])
    def test_apgar_bounds_inclusive(self, fe, v4, value):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "apgar_score": value}))
        assert "apgar_score" not in failures, f"apgar {value} should be valid"

    @pytest.mark.parametrize("value,reason", [(11, "above_max"), (-1, "below_min")])
    def test_apgar_out_of_range(self, fe, v4, value, reason):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "apgar_score": value}))
        assert failures.get("apgar_score") == reason

    def test_gpaq_days_bounded_zero_to_seven(self, fe, store):
        v1 = store.get_form("EPILEPSY_V1")
        base = {"seizure_count_total": 0, "gtcs_count": 0, "pregnancy_outcome": "ONGOING"}
        ok = _reasons(fe.evaluate(v1, {**base, "vigorous_work_days": 7, "transport_days": 0}))
        bad = _reasons(fe.evaluate(v1, {**base, "vigorous_work_days": 8}))
        assert "vigorous_work_days" not in ok and "transport_days" not in ok
        assert bad.get("vigorous_work_days") == "above_max"

    def test_required_fields_reported(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {}))
        assert failures.get("delivery_date") == "required"
        assert failures.get("birth_weight") == "required"

    def test_complete_required_answers_are_valid(self, fe, v4):
        assert fe.evaluate(v4, V4_REQUIRED).is_valid

    def test_not_a_number(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "birth_weight": "heavy"}))
        assert failures.get("birth_weight") == "not_a_number"

    def test_numeric_string_is_accepted(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "birth_weight": "2400"}))
        assert "birth_weight" not in failures

    def test_hidden_field_is_exempt(self, fe, store):
        v1 = store.get_form("EPILEPSY_V1")
        answers = {
            "seizure_count_total": 1, "gtcs_count": 0, "pregnancy_outcome": "ONGOING",
            # stale answer on a hidden field with an invalid value
            "max_duration": "not-an-option",
        }
        assert "max_duration" not in _reasons(fe.evaluate(v1, answers))

    def test_invalid_option(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "delivery_mode": "AIRLIFT"}))
        assert failures.get("delivery_mode") == "invalid_option"

    def test_bool_option_does_not_accept_int(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "has_malformation": 1}))
        assert failures.get("has_malformation") == "invalid_option"

    def test_exclusive_conflict(self, fe, v4):
        failures = _reasons(
            fe.evaluate(v4, {**V4_REQUIRED, "complications": ["NONE", "HEMORRHAGE"]})
        )
        assert failures.get("complications") == "exclusive_conflict"

    def test_invalid_date(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "delivery_date": "2026-13-40"}))
        assert failures.get("delivery_date") == "invalid_date"

    def test_pattern_mismatch(self, fe, store):
        v1 = store.get_form("EPILEPSY_V1")
        base = {"seizure_count_total": 0, "gtcs_count": 0, "pregnancy_outcome": "ONGOING"}
        bad = _reasons(fe.evaluate(v1, {**base, "tdm_sample_dosage": "500mg"}))
        ok = _reasons(fe.evaluate(v1, {**base, "tdm_sample_dosage": "500"}))
        assert bad.get("tdm_sample_dosage") == "pattern_mismatch"
        assert "tdm_sample_dosage" not in ok

    def test_unknown_field(self, fe, v4):
        failures = _reasons(fe.evaluate(v4, {**V4_REQUIRED, "shoe_size": 42}))
        assert failures.get("shoe_size") == "unknown_field"


# =====================================================================
# Scoring & interpretation
# =====================================================================


class TestScoring:

    def test_full_adl_scores_independent(self, fe, store):
        form = store.get_form("adl_iadl_combined")
        ev = fe.evaluate(form, {**FULL_BARTHEL, **FULL_LAWTON})
        assert ev.section_scores == {"barthel_adl": 100, "lawton_iadl": 8}
        assert ev.total_score == 108
        assert ev.interpretations["dependency"] == "INDEPENDENT"

    @pytest.mark.parametrize("barthel_override,lawton,expected", [
        ({"adl_transfer": 0, "adl_mobility": 0, "adl_stairs": 0, "adl_feeding": 0}, 8,
         "MODERATE_DEPENDENCY"),   # barthel 50
        ({"adl_stairs": 5}, 8, "MILD_DEPENDENCY"),   # barthel 95
        ({}, 4, "MODERATE_DEPENDENCY"),   # lawton < 5
    ])
    def test_dependency_levels(self, fe, store, barthel_override, lawton, expected):
        form = store.get_form("adl_iadl_combined")
        lawton_answers = {k: (1 if i < lawton else 0) for i, k in enumerate(FULL_LAWTON)}
        ev = fe.evaluate(form, {**FULL_BARTHEL, **barthel_override, **lawton_answers})
        assert ev.interpretations["dependency"] == expected, (
            f"scores {ev.section_scores} -> {ev.interpretations}"
        )

    def test_severe_dependency(self, fe, store):
        form = store.get_form("adl_iadl_combined")
        ev = fe.evaluate(form, {k: 0 for k in FULL_BARTHEL})
        assert ev.interpretations["dependency"] == "SEVERE_DEPENDENCY"

    def test_unscored_sections_excluded_from_total(self, fe, v4):
        answers = {**V4_REQUIRED, "epds_q1": 3, "epds_q2": 3, "epds_q3": 3}
        ev = fe.evaluate(v4, answers)
        assert ev.section_scores["epds_scale"] == 9
        assert ev.total_score == 9, "delivery/neonate sections are scored: false"
        assert ev.interpretations["epds_screen"] == "POSITIVE_SCREEN"

    def test_epds_below_threshold_is_negative(self, fe, v4):
        ev = fe.evaluate(v4, {**V4_REQUIRED, "epds_q1": 3, "epds_q2": 3, "epds_q3": 2})
        assert ev.interpretations["epds_screen"] == "NEGATIVE"

    def test_hidden_answers_do_not_score(self, fe, store):
        cdr = store.get_form("cdr_informant")
        shown = fe.section_scores(cdr, {"cdr_mem_1": 1, "cdr_mem_2": 1})
        hidden = fe.section_scores(cdr, {"cdr_mem_1": 0, "cdr_mem_2": 1})
        assert shown["cdr_informant"] == 2
        assert hidden["cdr_informant"] == 0, "cdr_mem_2 is hidden when cdr_mem_1 == 0"

    def test_fractional_option_values(self, fe, store):
        cdr = store.get_form("cdr_informant")
        scores = fe.section_scores(cdr, {"cdr_mem_3": 0.5, "cdr_mem_4": 0.5})
        assert scores["cdr_informant"] == pytest.approx(1.0)


# =====================================================================
# Answer writes & versioning
# =====================================================================


class TestWriteAnswer:

    def test_exclusive_option_clears_others(self, fe, v4):
        answers = {"complications": ["HEMORRHAGE", "INFECTION"]}
        updated = fe.write_answer(v4, answers, "complications", "NONE")
        assert updated["complications"] == ["NONE"]
        assert answers["complications"] == ["HEMORRHAGE", "INFECTION"], "input must not mutate"

    def test_other_option_clears_exclusive(self, fe, v4):
        updated = fe.write_answer(v4, {"complications": ["NONE"]}, "complications", "RUPTURE")
        assert updated["complications"] == ["RUPTURE"]

    def test_scalar_toggles_off(self, fe, v4):
        updated = fe.write_answer(
            v4, {"complications": ["RUPTURE", "INFECTION"]}, "complications", "RUPTURE",
        )
        assert updated["complications"] == ["INFECTION"]

    def test_list_applied_in_order(self, fe, v4):
        updated = fe.write_answer(
            v4, {}, "complications", ["HEMORRHAGE", "NONE", "EMBOLISM"],
        )
        assert updated["complications"] == ["EMBOLISM"]

    def test_none_clears_answer(self, fe, v4):
        updated = fe.write_answer(v4, {"birth_weight": 3000}, "birth_weight", None)
        assert "birth_weight" not in updated

    def test_scalar_field_overwrites(self, fe, v4):
        updated = fe.write_answer(v4, {"birth_weight": 3000}, "birth_weight", 2450)
        assert updated == {"birth_weight": 2450}

    def test_unknown_field_raises_key_error(self, fe, v4):
        with pytest.raises(KeyError):
            fe.write_answer(v4, {}, "shoe_size", 42)

    def test_display_field_rejects_answers(self, fe, v4):
        with pytest.raises(ValueError, match="does not accept answers"):
            fe.write_answer(v4, {}, "is_low_birth_weight", True)


class TestVersioning:

    def test_matching_version_evaluates(self, fe, v4):
        assert fe.evaluate(v4, V4_REQUIRED, version="2.0").version == "2.0"

    def test_version_mismatch_raises(self, fe, v4):
        with pytest.raises(VersionMismatchError, match="version mismatch"):
            fe.evaluate(v4, V4_REQUIRED, version="1.0")

    def test_version_mismatch_is_value_error(self):
        assert issubclass(VersionMismatchError, ValueError)


# =====================================================================
# Disease assessment scales
# =====================================================================


MIDAS_DAYS = ("midas_missed_work", "midas_reduced_work", "midas_missed_housework",
              "midas_reduced_housework", "midas_headache_days")
SERIAL_SEVENS = {"calc_1": 93, "calc_2": 86, "calc_3": 79, "calc_4": 72, "calc_5": 65}


class TestDiseaseScales:

    @pytest.mark.parametrize("days,grade", [
        ((0, 0, 0, 0, 5), "I级（轻微或无致残）"),
        ((1, 1, 1, 1, 2), "II级（轻度致残）"),
        ((2, 2, 2, 2, 3), "III级（中度致残）"),
        ((5, 5, 5, 5, 1), "IV级（重度致残）"),
    ])
    def test_midas_days_sum_into_grade(self, fe, store, days, grade):
        answers = dict(zip(MIDAS_DAYS, days))
        answers["midas_pain_vas"] = 8
        result = fe.evaluate(store.get_form("MIDAS"), answers)
        assert result.total_score == sum(days), "VAS must not count toward MIDAS"
        assert result.interpretations["midas_grade"] == grade

    def test_midas_day_answers_as_text(self, fe, store):
        answers = {fid: "2" for fid in MIDAS_DAYS}
        assert fe.evaluate(store.get_form("MIDAS"), answers).total_score == 10

    def test_serial_sevens_score_one_per_correct_answer(self, fe, store):
        mmse = store.get_form("MMSE")
        answers = {**SERIAL_SEVENS, "calc_3": 80, "calc_5": "65"}
        assert fe.section_scores(mmse, answers)["mmse_attention"] == 4

    def test_mmse_education_is_not_scored(self, fe, store):
        result = fe.evaluate(store.get_form("MMSE"), {**SERIAL_SEVENS, "education_years": 12})
        assert result.section_scores["mmse_meta"] == 0, "unscored number fields add nothing"
        assert result.total_score == 5
        assert result.interpretations["severity"] == "SEVERE"

    def test_qolie_recovery_only_after_seizures(self, fe, store):
        qolie = store.get_form("QOLIE-31")
        assert "qolie_recovery" not in fe.visible_field_ids(qolie, {"qolie_seizures": 0})
        assert "qolie_recovery" in fe.visible_field_ids(qolie, {"qolie_seizures": 20})

    def test_qolie_hidden_recovery_does_not_score(self, fe, store):
        qolie = store.get_form("QOLIE-31")
        answers = {"qolie_seizures": 0, "qolie_recovery": 30, "qolie_worry": 30, "qolie_social": 40}
        result = fe.evaluate(qolie, answers)
        assert result.total_score == 70
        assert result.interpretations["quality_of_life"] == "生活质量严重受损"
