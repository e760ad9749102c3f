import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from blocks.models import Block
from blocks.presets import get_preset_blocks, list_presets
from blocks.validator import get_validation_summary, validate_strategy


def blocks(*specs):
    return [Block.from_dict(spec, index=i) for i, spec in enumerate(specs)]


def messages(issues):
    return [i.message for i in issues]


GOOD = (
    {'id': 'size', 'type': 'POSITION_SIZE', 'percentage': 20},
    {'id': 'buy', 'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 10},
    {'id': 'tp', 'type': 'TAKE_PROFIT', 'percentage': 10},
    {'id': 'sl', 'type': 'STOP_LOSS', 'percentage': 5},
    {'id': 'dd', 'type': 'MAX_DRAWDOWN', 'percentage': 20},
)


class TestValidator(unittest.TestCase):
    def test_empty_strategy(self):
        result = validate_strategy([])
        self.assertFalse(result.valid)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.warnings, [])

    def test_complete_strategy_clean(self):
        result = validate_strategy(blocks(*GOOD))
        self.assertTrue(result.valid)
        self.assertEqual(result.warnings, [])
        self.assertEqual(get_validation_summary(result), 'Strategy is valid with no warnings')

    def test_missing_entry_is_error(self):
        result = validate_strategy(blocks({'type': 'STOP_LOSS', 'percentage': 5}))
        self.assertFalse(result.valid)
        self.assertIn('Strategy missing entry block (MARKET_BUY or BUY_ON_DIP)', messages(result.errors))

    def test_missing_exit_is_warning(self):
        result = validate_strategy(blocks({'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1}))
        self.assertTrue(result.valid)
        self.assertTrue(any('missing explicit exit block' in m for m in messages(result.warnings)))

    def test_entry_params(self):
        result = validate_strategy(blocks(
            {'id': 'b', 'type': 'BUY_ON_DIP', 'quantity': 0},
            {'type': 'TAKE_PROFIT', 'percentage': 5},
        ))
        errs = messages(result.errors)
        self.assertIn('Entry block missing ticker symbol', errs)
        self.assertIn('Entry block missing or invalid quantity', errs)
        self.assertIn('BUY_ON_DIP missing threshold parameter', errs)
        self.assertTrue(all(e.block_id == 'b' for e in result.errors))

    def test_range_warnings_not_errors(self):
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'STOP_LOSS', 'percentage': 60},
            {'type': 'POSITION_SIZE', 'percentage': 80},
        ))
        self.assertTrue(result.valid)
        warns = messages(result.warnings)
        self.assertIn('Stop loss percentage very high (60%), consider reducing', warns)
        self.assertIn('Position size exceeds 50% of portfolio - high concentration risk', warns)

    def test_rsi_threshold_range(self):
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'RSI_SIGNAL', 'period': 14, 'threshold': 150},
        ))
        self.assertIn('RSI threshold must be between 0 and 100', messages(result.errors))

    def test_non_positive_signal_periods_are_errors(self):
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'MA_CROSS', 'period': -5},
            {'type': 'MACD_CROSS', 'period': 26, 'fast': 0, 'signal': 'x'},
        ))
        self.assertFalse(result.valid)
        errors = messages(result.errors)
        self.assertIn('MA_CROSS period must be a positive integer', errors)
        self.assertIn('MACD_CROSS fast must be a positive integer', errors)
        self.assertIn('MACD_CROSS signal must be a positive integer', errors)
        self.assertNotIn('MACD_CROSS period must be a positive integer', errors)

        # an absent period is still only a warning
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'MA_CROSS', 'quantity': 1},
        ))
        self.assertTrue(result.valid)
        self.assertIn('MA_CROSS missing period parameter, using defaults', messages(result.warnings))

    def test_position_size_over_100(self):
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'POSITION_SIZE', 'percentage': 120},
        ))
        self.assertIn('Position size cannot exceed 100% of portfolio', messages(result.errors))

    def test_ordering_and_duplicates(self):
        result = validate_strategy(blocks(
            {'id': 'tp1', 'type': 'TAKE_PROFIT', 'percentage': 5},
            {'type': 'TAKE_PROFIT', 'percentage': 8},
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'MARKET_BUY', 'ticker': 'MSFT', 'quantity': 1},
        ))
        warns = messages(result.warnings)
        self.assertIn('Exit block appears before entry block - verify strategy logic', warns)
        self.assertIn('Multiple take profit blocks detected - only one will execute', warns)
        self.assertTrue(any(m.startswith('Duplicate block types detected') for m in warns))
        self.assertTrue(any(m.startswith('Multiple ticker symbols detected: AAPL, MSFT') for m in warns))

    def test_risk_coverage_warnings(self):
        result = validate_strategy(blocks(
            {'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1},
            {'type': 'MARKET_SELL'},
        ))
        warns = messages(result.warnings)
        self.assertIn('No stop loss block - consider adding for risk management', warns)
        self.assertIn('No max drawdown limit - consider adding for portfolio protection', warns)
        self.assertIn('No position sizing block - using default 100% allocation', warns)
        self.assertIn('Block has no parameters', warns)

    def test_summary_counts(self):
        result = validate_strategy(blocks({'type': 'STOP_LOSS', 'percentage': 5}))
        summary = get_validation_summary(result)
        self.assertTrue(summary.startswith('1 error found'))
        self.assertIn('warnings found', summary)


class TestPresets(unittest.TestCase):
    def test_presets_validate(self):
        for name in list_presets():
            result = validate_strategy(get_preset_blocks(name, 'AAPL'))
            self.assertTrue(result.valid, f"{name}: {result.errors}")

    def test_unknown_preset(self):
        with self.assertRaises(ValueError):
            get_preset_blocks('nope', 'AAPL')


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
