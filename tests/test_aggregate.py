# Tests for the hourly aggregate and PLU registry

from decimal import Decimal

import pytest
from sampi.aggregate import HourlyAggregate, PLURegistry, normalise_plu
from sampi.exceptions import ConfigError


class TestPLURegistry:
    """Test PLU registry loading and lookup"""

    def test_keeps_file_order(self):
        """Codes keep their order from the PLU list"""
        registry = PLURegistry(['Tea', 'Coffee', 'Hot Food'])

        assert registry.codes == ('Tea', 'Coffee', 'Hot Food')
        assert list(registry) == ['Tea', 'Coffee', 'Hot Food']

    def test_lookup_ignores_case_and_whitespace(self):
        """Lookups normalise the key"""
        registry = PLURegistry(['Coffee', 'HOT FOOD'])

        assert registry.lookup(' coffee ') == 'Coffee'
        assert registry.lookup('COFFEE') == 'Coffee'
        assert registry.lookup('hot food') == 'HOT FOOD'
        assert registry.lookup('Biscuits') is None
        assert 'tea' not in registry

    def test_blank_lines_and_duplicates(self):
        """Blank entries are skipped and duplicates keep the first spelling"""
        registry = PLURegistry(['Coffee', '', '  ', 'COFFEE', 'Tea'])

        assert registry.codes == ('Coffee', 'Tea')
        assert len(registry) == 2

    def test_from_file(self, tmp_path):
        """One PLU per line"""
        plu_file = tmp_path / 'plu.txt'
        plu_file.write_text('Coffee\nTea\n\nNewspapers\n', encoding='utf-8')

        registry = PLURegistry.from_file(plu_file)

        assert registry.codes == ('Coffee', 'Tea', 'Newspapers')

    def test_missing_file(self, tmp_path):
        """A missing PLU list is a configuration error"""
        with pytest.raises(ConfigError):
            PLURegistry.from_file(tmp_path / 'missing.txt')

    @pytest.mark.parametrize("raw, expected", [
        ("coffee", "Coffee"),
        ("  HOT food ", "Hot Food"),
        ("7UP", "7up"),
    ])
    def test_normalise_plu(self, raw, expected):
        """Keys are trimmed and Title Cased word by word"""
        assert normalise_plu(raw) == expected


class TestHourlyAggregate:
    """Test the aggregate value type"""

    def setup_method(self):
        self.registry = PLURegistry(['Coffee', 'Tea'])
        self.aggregate = HourlyAggregate.for_registry(self.registry)

    def test_starts_zeroed(self):
        """A new aggregate is unset with zero totals"""
        assert self.aggregate.is_unset
        assert self.aggregate.hour is None
        assert self.aggregate.total_takings == 0
        assert list(self.aggregate.plu_totals) == ['Coffee', 'Tea']

    def test_start_hour(self):
        """Hour labels are zero padded"""
        self.aggregate.start_hour('09', '09:12')

        assert self.aggregate.hour_label == '09.00-10.00'
        assert self.aggregate.hour == '09'
        assert self.aggregate.first_transaction_time == '09:12'

    def test_clone_is_independent(self):
        """Changing a clone leaves the original alone"""
        clone = self.aggregate.clone()
        clone.plu_totals['Coffee'] += Decimal('1.00')
        clone.total_takings += Decimal('1.00')

        assert self.aggregate.plu_totals['Coffee'] == 0
        assert self.aggregate.total_takings == 0
        assert clone != self.aggregate

    def test_restore_copies_values(self):
        """restore() makes the aggregate equal to, but not share with, the source"""
        snapshot = self.aggregate.clone()
        snapshot.start_hour('10', '10:00')

        self.aggregate.restore(snapshot)
        assert self.aggregate == snapshot

        self.aggregate.plu_totals['Tea'] += Decimal('2.00')
        assert snapshot.plu_totals['Tea'] == 0

    def test_clear_keeps_plu_keys(self):
        """clear() zeroes values but keeps the column set"""
        self.aggregate.start_hour('11', '11:05')
        self.aggregate.plu_totals['Tea'] = Decimal('3.00')
        self.aggregate.no_sale_count = 2

        self.aggregate.clear()

        assert self.aggregate == HourlyAggregate.for_registry(self.registry)

    def test_columns_and_row(self):
        """The row lines up with the CSV header"""
        self.aggregate.start_hour('09', '09:00')
        self.aggregate.total_takings = Decimal('5.00')
        self.aggregate.cash_total = Decimal('2.00')
        self.aggregate.card_total = Decimal('3.00')
        self.aggregate.plu_totals['Tea'] = Decimal('5.00')
        self.aggregate.customer_count = 2
        self.aggregate.last_transaction_time = '09:45'

        assert self.aggregate.columns() == [
            'Hours', 'Total Takings', 'Cash', 'Credit Cards', 'Coffee', 'Tea',
            'Customer Count', 'First Transaction', 'Last Transaction', 'No Sale',
        ]
        assert self.aggregate.to_row() == [
            '09.00-10.00', '5.00', '2.00', '3.00', '0', '5.00', '2', '09:00', '09:45', '0',
        ]
