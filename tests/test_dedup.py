"""
Tests for issue keys and de-duplication against acknowledged issues.
"""
from night_audit import Issue, build_issue_key, filter_new_issues


class TestIssueKey:
    def test_reservation_id_takes_precedence(self):
        assert build_issue_key("payments_mismatch", "r1", "s1", "101") == "payments_mismatch:r1"

    def test_falls_back_to_stay_then_room(self):
        assert build_issue_key("stay_without_reservation", None, "s1", "101") == "stay_without_reservation:s1"
        assert build_issue_key("room_occupied_without_stay", None, None, "101") == "room_occupied_without_stay:101"

    def test_unknown_subject(self):
        assert build_issue_key("room_occupied_without_stay") == "room_occupied_without_stay:?"

    def test_to_dict_shape(self):
        issue = Issue(
            type="payments_mismatch",
            message="Reservation r1 postings 10.00 != payments 0.00",
            reservation_id="r1",
            details={"postingsTotal": 10.0, "paymentsTotal": 0.0},
        )

        assert issue.to_dict() == {
            "issueKey": "payments_mismatch:r1",
            "type": "payments_mismatch",
            "message": "Reservation r1 postings 10.00 != payments 0.00",
            "reservationId": "r1",
            "postingsTotal": 10.0,
            "paymentsTotal": 0.0,
            "noticed": False,
        }


class TestFilterNewIssues:
    def test_noticed_keys_are_dropped(self):
        issues = [
            Issue(type="possible_noshow", message="a", reservation_id="r1"),
            Issue(type="possible_noshow", message="b", reservation_id="r2"),
            Issue(type="room_occupied_without_stay", message="c", room_number="101"),
        ]

        new = filter_new_issues(issues, frozenset({"possible_noshow:r1", "room_occupied_without_stay:101"}))

        assert [i.issue_key for i in new] == ["possible_noshow:r2"]

    def test_same_subject_different_type_is_not_suppressed(self):
        issues = [Issue(type="checked_in_with_past_checkin", message="a", reservation_id="r1")]

        assert filter_new_issues(issues, frozenset({"possible_noshow:r1"})) == issues

    def test_empty_noticed_set_keeps_everything(self):
        issues = [Issue(type="possible_noshow", message="a", reservation_id="r1")]
        assert filter_new_issues(issues, frozenset()) == issues

    def test_repeated_key_is_kept_once(self):
        issues = [
            Issue(type="stay_past_checkout", message="a", reservation_id="r1", stay_id="s1"),
            Issue(type="possible_noshow", message="b", reservation_id="r2"),
            Issue(type="stay_past_checkout", message="c", reservation_id="r1", stay_id="s2"),
        ]

        new = filter_new_issues(issues, frozenset())

        assert [(i.issue_key, i.stay_id) for i in new] == [
            ("stay_past_checkout:r1", "s1"),
            ("possible_noshow:r2", None),
        ]
