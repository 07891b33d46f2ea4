import unittest

from stockcycle.services.reconciliation_service import Availability
from stockcycle.services.report_finalizer import (
    ReportEntry,
    clamp_quantities,
    finalize_report,
    non_negative,
)


class _Product:
    def __init__(self, id, name, price_cents):
        self.id = id
        self.name = name
        self.price_cents = price_cents


def _avail(available):
    return Availability.compute(carry_over=0, received=available, already_reported=0)


class ClampTests(unittest.TestCase):
    def test_sold_is_bounded_first(self):
        self.assertEqual(clamp_quantities(30, 5, 25), (25, 0, 0))

    def test_damaged_takes_what_is_left(self):
        self.assertEqual(clamp_quantities(20, 10, 25), (20, 5, 0))

    def test_under_reporting_leaves_remaining(self):
        self.assertEqual(clamp_quantities(3, 2, 10), (3, 2, 5))

    def test_negative_inputs_become_zero(self):
        self.assertEqual(clamp_quantities(-4, -1, 10), (0, 0, 10))

    def test_nothing_available(self):
        self.assertEqual(clamp_quantities(5, 5, 0), (0, 0, 0))

    def test_conservation(self):
        for sold in (0, 3, 12, 40):
            for damaged in (0, 1, 9, 40):
                for available in (0, 5, 12, 30):
                    s, d, r = clamp_quantities(sold, damaged, available)
                    self.assertEqual(s + d + r, available)
                    self.assertGreaterEqual(r, 0)
                    self.assertLessEqual(s, sold)
                    self.assertLessEqual(d, damaged)


class NormalizationTests(unittest.TestCase):
    def test_non_negative(self):
        self.assertEqual(non_negative(None), 0)
        self.assertEqual(non_negative(-3), 0)
        self.assertEqual(non_negative("7"), 7)
        self.assertEqual(non_negative("junk"), 0)
        self.assertEqual(non_negative(True), 0)

    def test_entry_from_raw(self):
        self.assertEqual(ReportEntry.from_raw({"sold": 4, "damaged": -2}), ReportEntry(4, 0))
        self.assertEqual(ReportEntry.from_raw(None), ReportEntry(0, 0))


class FinalizeReportTests(unittest.TestCase):
    def setUp(self):
        self.products = [_Product(1, "Widget", 10), _Product(2, "Gadget", 250)]

    def test_every_catalog_product_gets_a_line(self):
        finalized = finalize_report({1: {"sold": 2}}, {1: _avail(5), 2: _avail(4)}, self.products)

        self.assertEqual([d.product_id for d in finalized.details], [1, 2])
        gadget = finalized.details[1]
        self.assertEqual(gadget.quantity_sold, 0)
        self.assertEqual(gadget.quantity_damaged, 0)
        self.assertEqual(gadget.remaining_stock, 4)
        self.assertEqual(gadget.quantity_received, 4)

    def test_totals_are_sums_of_details(self):
        entries = {1: {"sold": 2, "damaged": 1}, 2: {"sold": 3, "damaged": 0}}
        finalized = finalize_report(entries, {1: _avail(5), 2: _avail(4)}, self.products)

        self.assertEqual(finalized.total_sold, 5)
        self.assertEqual(finalized.total_damaged, 1)
        self.assertEqual(finalized.total_revenue_cents, 2 * 10 + 3 * 250)

    def test_missing_availability_is_zero(self):
        finalized = finalize_report({1: {"sold": 9}}, {}, self.products)
        self.assertEqual(finalized.details[0].quantity_sold, 0)
        self.assertEqual(finalized.total_revenue_cents, 0)

    def test_unknown_products_are_reported(self):
        finalized = finalize_report({77: {"sold": 1}, 1: {"sold": 1}}, {1: _avail(2)}, self.products)
        self.assertEqual(finalized.unknown_product_ids, (77,))
        self.assertEqual(len(finalized.details), 2)

    def test_to_dict(self):
        data = finalize_report({}, {}, self.products[:1]).to_dict()
        self.assertEqual(data["details"][0]["product_name"], "Widget")
        self.assertEqual(data["unknown_product_ids"], [])


if __name__ == "__main__":
    unittest.main()
