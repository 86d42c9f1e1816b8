import unittest
from datetime import datetime

from daylog.models import ABANDON_DESCRIPTION, END_DESCRIPTION, PAUSE_DESCRIPTION, ParserSettings
from daylog.parsers.grammar import LogParser, parse_log


REFERENCE = datetime(2024, 12, 24)


def _parse(content: str, settings: ParserSettings | None = None):
    return parse_log(content, REFERENCE, settings)


class EntryFieldTests(unittest.TestCase):
    def test_simple_task_lands_on_reference_day(self) -> None:
        result = _parse("09:00 morning standup")
        self.assertTrue(result.ok)
        self.assertEqual(len(result.entries), 1)
        entry = result.entries[0]
        self.assertEqual(entry.timestamp, datetime(2024, 12, 24, 9, 0))
        self.assertEqual(entry.description, "morning standup")
        self.assertEqual(entry.tags, [])
        self.assertIsNone(entry.project)
        self.assertEqual(entry.indentLevel, 0)
        self.assertEqual(entry.lineNumber, 1)
        self.assertEqual(entry.kind, "task")

    def test_every_field_is_populated(self) -> None:
        result = _parse("09:00 fix bug @projectX +code +urgent ~2h (45m) ->paused # found it")
        entry = result.entries[0]
        self.assertEqual(entry.description, "fix bug")
        self.assertEqual(entry.project, "projectX")
        self.assertEqual(entry.tags, ["code", "urgent"])
        self.assertEqual(entry.estimateMinutes, 120)
        self.assertEqual(entry.explicitDurationMinutes, 45)
        self.assertEqual(entry.state, "paused")
        self.assertEqual(entry.remark, "found it")

    def test_tag_only_line_uses_first_tag_as_description(self) -> None:
        entry = _parse("10:00 +break +coffee").entries[0]
        self.assertEqual(entry.description, "break")
        self.assertEqual(entry.tags, ["break", "coffee"])
        self.assertTrue(entry.descriptionFromTag)
        self.assertFalse(_parse("10:00 code +code").entries[0].descriptionFromTag)

    def test_seconds_are_kept(self) -> None:
        entry = _parse("09:00:30 task").entries[0]
        self.assertEqual(entry.timestamp, datetime(2024, 12, 24, 9, 0, 30))

    def test_indentation_and_line_numbers_follow_the_source(self) -> None:
        content = "# Monday\n\n09:00 coding\n  10:37 walked dog +break\n10:45 back"
        result = _parse(content)
        self.assertEqual([e.lineNumber for e in result.entries], [3, 4, 5])
        self.assertEqual([e.indentLevel for e in result.entries], [0, 2, 0])

    def test_last_project_wins_with_warning(self) -> None:
        result = _parse("09:00 task @alpha @beta")
        self.assertEqual(result.entries[0].project, "beta")
        self.assertEqual(result.warnings, ("Line 1: Multiple projects given, using @beta",))


class DateContextTests(unittest.TestCase):
    def test_backward_time_rolls_to_next_day(self) -> None:
        result = _parse("23:30 late work\n00:15 after midnight")
        self.assertEqual(result.entries[1].timestamp, datetime(2024, 12, 25, 0, 15))
        self.assertEqual(
            result.warnings,
            ("Line 2: Time went backward (00:15), assuming next day",),
        )

    def test_later_entries_stay_on_the_rolled_day(self) -> None:
        result = _parse("23:30 a\n00:15 b\n01:00 c")
        self.assertEqual(result.entries[2].timestamp, datetime(2024, 12, 25, 1, 0))
        self.assertEqual(len(result.warnings), 1)

    def test_large_gap_warning(self) -> None:
        result = _parse("08:00 a\n17:30 b")
        self.assertEqual(result.warnings, ("Line 2: Large time gap detected (9 hours)",))

    def test_gap_equal_to_threshold_is_not_reported(self) -> None:
        self.assertEqual(_parse("08:00 a\n16:00 b").warnings, ())

    def test_gap_is_measured_in_whole_hours(self) -> None:
        self.assertEqual(_parse("08:00 a\n16:30 b").warnings, ())
        self.assertEqual(
            _parse("08:00 a\n17:00 b").warnings,
            ("Line 2: Large time gap detected (9 hours)",),
        )

    def test_underflow_can_also_be_a_large_gap(self) -> None:
        result = _parse("23:00 a\n22:00 b")
        self.assertEqual(result.entries[1].timestamp, datetime(2024, 12, 25, 22, 0))
        self.assertEqual(
            result.warnings,
            (
                "Line 2: Time went backward (22:00), assuming next day",
                "Line 2: Large time gap detected (23 hours)",
            ),
        )

    def test_gap_threshold_comes_from_settings(self) -> None:
        result = _parse("08:00 a\n11:00 b", ParserSettings(largeGapHours=2))
        self.assertEqual(result.warnings, ("Line 2: Large time gap detected (3 hours)",))

    def test_full_date_resets_context_without_warnings(self) -> None:
        result = _parse("2024-12-24 23:00 a\n2024-12-26 08:00 b\n09:00 c\n2024-12-20 10:00 d")
        self.assertEqual(result.warnings, ())
        self.assertEqual(result.entries[1].timestamp, datetime(2024, 12, 26, 8, 0))
        self.assertEqual(result.entries[2].timestamp, datetime(2024, 12, 26, 9, 0))
        self.assertEqual(result.entries[3].timestamp, datetime(2024, 12, 20, 10, 0))

    def test_timestamps_are_non_decreasing_for_time_only_logs(self) -> None:
        result = _parse("22:00 a\n23:59 b\n00:01 c\n08:00 d\n07:00 e")
        stamps = [entry.timestamp for entry in result.entries]
        self.assertEqual(stamps, sorted(stamps))


class MarkerTests(unittest.TestCase):
    def test_state_markers(self) -> None:
        content = "09:00 coding\n10:00 @pause\n11:00 more\n12:00 @abandon\n13:00 last\n17:00 @end # wrap"
        entries = _parse(content).entries
        self.assertEqual([e.kind for e in entries], ["task", "pause", "task", "abandon", "task", "end"])
        self.assertEqual(entries[1].description, PAUSE_DESCRIPTION)
        self.assertEqual(entries[3].description, ABANDON_DESCRIPTION)
        self.assertEqual(entries[5].description, END_DESCRIPTION)
        self.assertEqual(entries[5].remark, "wrap")
        self.assertTrue(entries[5].is_marker)
        self.assertEqual(entries[5].tags, [])

    def test_state_markers_are_always_top_level(self) -> None:
        entries = _parse("09:00 coding\n    12:00 @end").entries
        self.assertEqual(entries[1].indentLevel, 0)

    def test_prev_skips_tag_only_entries(self) -> None:
        entries = _parse("09:00 coding\n10:00 +break\n10:30 @prev").entries
        self.assertEqual(entries[2].description, "coding")
        self.assertEqual(entries[2].resumeMarkerValue, "prev")

    def test_prev_skips_interruptions_and_markers(self) -> None:
        entries = _parse("09:00 coding\n  10:00 phone call\n10:15 @pause\n10:30 @prev").entries
        self.assertEqual(entries[3].description, "coding")

    def test_prev_without_history_is_an_error(self) -> None:
        result = _parse("09:00 @prev")
        self.assertEqual(result.entries, ())
        self.assertEqual(result.errors[0].message, "No previous task to resume")
        self.assertEqual(result.errors[0].line, 1)

    def test_numbered_resume_counts_top_level_tasks(self) -> None:
        entries = _parse("09:00 alpha\n  09:10 aside\n09:20 beta\n09:30 @2\n09:40 @1").entries
        self.assertEqual(entries[3].description, "beta")
        self.assertEqual(entries[4].description, "alpha")
        self.assertEqual(entries[3].resumeMarkerValue, "2")

    def test_numbered_resume_out_of_range(self) -> None:
        result = _parse("09:00 alpha\n09:30 @5")
        self.assertEqual(len(result.entries), 1)
        self.assertEqual(result.errors[0].message, "Task @5 not found")

    def test_numbered_resume_counts_state_markers(self) -> None:
        result = _parse("09:00 alpha\n10:00 @pause\n11:00 beta\n12:00 @3\n13:00 @2")
        self.assertEqual(result.entries[3].description, "beta")
        self.assertEqual(len(result.entries), 4)
        self.assertEqual(result.errors[0].message, "Task @2 not found")
        self.assertEqual(result.errors[0].line, 5)

    def test_prev_skips_bare_resume(self) -> None:
        entries = _parse("09:00 coding\n10:00 @resume\n11:00 @prev").entries
        self.assertEqual(entries[2].description, "coding")

    def test_bare_resume_leaves_description_empty(self) -> None:
        entry = _parse("09:00 @resume").entries[0]
        self.assertEqual(entry.description, "")
        self.assertEqual(entry.resumeMarkerValue, "resume")
        self.assertEqual(entry.kind, "task")

    def test_resume_with_details(self) -> None:
        entry = _parse("09:00 @resume Feature work @project +code").entries[0]
        self.assertEqual(entry.description, "Feature work")
        self.assertEqual(entry.project, "project")
        self.assertEqual(entry.tags, ["code"])
        self.assertEqual(entry.resumeMarkerValue, "resume")


class ErrorCollectionTests(unittest.TestCase):
    def test_out_of_range_clock(self) -> None:
        result = _parse("25:00 task")
        self.assertFalse(result.ok)
        self.assertEqual(result.entries, ())
        self.assertEqual(result.errors[0].message, 'Invalid time values: "25:00"')
        self.assertEqual(result.errors[0].line, 1)

    def test_invalid_calendar_date(self) -> None:
        result = _parse("2024-13-45 09:00 task")
        self.assertEqual(result.errors[0].message, 'Invalid timestamp: "2024-13-45 09:00"')

    def test_missing_description_or_tags(self) -> None:
        result = _parse("09:00 @project ~1h")
        self.assertEqual(result.errors[0].message, "Missing description or tags")

    def test_duration_errors_are_labelled(self) -> None:
        estimate = _parse("09:00 task ~2h70m").errors[0]
        self.assertEqual(estimate.message, 'Invalid estimate: Minutes must be less than 60: "2h70m"')
        duration = _parse("09:00 task (0m)").errors[0]
        self.assertEqual(duration.message, 'Invalid duration: Duration must specify hours and/or minutes: "0m"')

    def test_errors_from_every_stage_are_ordered_by_line(self) -> None:
        content = "no timestamp\n09:00 good\n25:00 bad clock\n10:00 bad +\n11:00 fine"
        result = _parse(content)
        self.assertEqual([error.line for error in result.errors], [1, 3, 4])
        self.assertEqual([entry.description for entry in result.entries], ["good", "fine"])

    def test_failed_lines_do_not_move_the_date_context(self) -> None:
        result = _parse("23:00 a\n25:00 bad\n23:30 b")
        self.assertEqual(result.entries[1].timestamp, datetime(2024, 12, 24, 23, 30))
        self.assertEqual(result.warnings, ())

    def test_empty_input(self) -> None:
        result = _parse("")
        self.assertTrue(result.ok)
        self.assertEqual(result.entries, ())


class ParserLifecycleTests(unittest.TestCase):
    def test_parsing_is_deterministic(self) -> None:
        content = "09:00 coding @work +code\n  10:00 call\n23:00 late\n01:00 early @prev"
        self.assertEqual(_parse(content), _parse(content))

    def test_parser_instances_are_single_use(self) -> None:
        parser = LogParser(REFERENCE)
        parser.parse("09:00 task")
        with self.assertRaises(RuntimeError):
            parser.parse("10:00 task")

    def test_parse_timestamp_tracks_state(self) -> None:
        parser = LogParser(REFERENCE)
        first = parser.parse_timestamp("22:00", 1)
        second = parser.parse_timestamp("01:00", 2)
        self.assertEqual(first, datetime(2024, 12, 24, 22, 0))
        self.assertEqual(second, datetime(2024, 12, 25, 1, 0))
        self.assertEqual(parser.current_date, datetime(2024, 12, 25))
        self.assertEqual(parser.last_timestamp, second)


if __name__ == "__main__":
    unittest.main()
