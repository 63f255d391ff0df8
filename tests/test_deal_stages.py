"""
Tests for deal stage vocabulary and swipe progression
"""
import pytest
from datetime import date, datetime
from services.deal_stages import (
    STAGES,
    STAGE_ORDER,
    next_stage,
    previous_stage,
    apply_swipe,
    stage_label,
    stage_index,
    is_valid_stage,
    is_terminal,
    temperature_rank,
    follow_up_date,
    follow_up_presets,
)


@pytest.mark.unit
class TestStageVocabulary:
    """Tests for stage keys and labels"""

    def test_fourteen_stages(self):
        """Test that every stage key is defined once"""
        assert len(STAGES) == 14
        assert len(set(STAGES)) == 14

    def test_stage_order_is_first_twelve(self):
        """Test that post-sale stages are outside the linear order"""
        assert STAGE_ORDER[0] == 'prospect'
        assert STAGE_ORDER[-1] == 'dead'
        assert 'installation_scheduled' not in STAGE_ORDER
        assert 'active_merchant' not in STAGE_ORDER

    def test_short_labels(self):
        """Test badge labels for won and lost"""
        assert stage_label('sold') == 'Won'
        assert stage_label('dead') == 'Lost'
        assert stage_label('appointment_set') == 'Appt Set'

    def test_long_labels(self):
        """Test kanban column labels"""
        assert stage_label('prospect', short=False) == 'Prospects'

    def test_unknown_stage_label_is_key(self):
        """Test that an unknown stage renders as its key"""
        assert stage_label('mystery') == 'mystery'

    def test_is_valid_stage(self):
        """Test stage validation"""
        assert is_valid_stage('negotiating') is True
        assert is_valid_stage('closed') is False

    def test_terminal_stages(self):
        """Test that sold, dead and active merchant are terminal"""
        assert is_terminal('sold')
        assert is_terminal('dead')
        assert is_terminal('active_merchant')
        assert not is_terminal('installation_scheduled')


@pytest.mark.unit
class TestProgression:
    """Tests for swipe progression"""

    def test_next_stage_advances(self):
        """Test that a right swipe moves one stage forward"""
        assert next_stage('prospect') == 'cold_call'
        assert next_stage('documents_signed') == 'sold'

    def test_next_stage_from_terminal_is_none(self):
        """Test that terminal stages do not advance"""
        assert next_stage('sold') is None
        assert next_stage('dead') is None

    def test_next_stage_never_reaches_dead(self):
        """Test that progression cannot land on dead"""
        for stage in STAGE_ORDER:
            assert next_stage(stage) != 'dead'

    def test_post_sale_stage_does_not_advance(self):
        """Test that post-sale stages are outside progression"""
        assert next_stage('installation_scheduled') is None

    def test_previous_stage(self):
        """Test that a left swipe moves one stage back"""
        assert previous_stage('cold_call') == 'prospect'
        assert previous_stage('prospect') is None

    def test_apply_swipe(self):
        """Test swipe direction resolution"""
        assert apply_swipe('negotiating', 'right') == 'follow_up'
        assert apply_swipe('negotiating', 'left') == 'statement_analysis'

    def test_apply_swipe_unknown_direction(self):
        """Test that an unknown direction raises"""
        with pytest.raises(ValueError):
            apply_swipe('prospect', 'up')

    def test_stage_index_unknown_sorts_last(self):
        """Test that stages outside the order sort after it"""
        assert stage_index('prospect') == 0
        assert stage_index('active_merchant') == len(STAGE_ORDER)


@pytest.mark.unit
class TestTemperatureAndFollowUps:
    """Tests for temperature ranking and follow-up presets"""

    def test_temperature_rank(self):
        """Test hot sorts before warm before cold"""
        assert temperature_rank('hot') < temperature_rank('warm') < temperature_rank('cold')

    def test_missing_temperature_ranks_as_warm(self):
        """Test that None ranks as the default temperature"""
        assert temperature_rank(None) == temperature_rank('warm')

    def test_follow_up_date_keeps_type(self):
        """Test that date and datetime inputs keep their type"""
        assert follow_up_date(3, date(2026, 1, 30)) == date(2026, 2, 2)
        assert follow_up_date(1, datetime(2026, 1, 1, 9, 30)) == datetime(2026, 1, 2, 9, 30)

    def test_presets_recommend_three_days(self):
        """Test that exactly one preset is recommended"""
        presets = follow_up_presets(date(2026, 3, 1))
        recommended = [p for p in presets if p['recommended']]
        assert len(recommended) == 1
        assert recommended[0]['days'] == 3
        assert recommended[0]['date'] == '2026-03-04'
