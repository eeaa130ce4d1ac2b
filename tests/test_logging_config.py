import json
import logging

from logging_config import DevFormatter, JSONFormatter, request_id_var, user_id_var, user_kind_var


def make_record(msg="Notification created", data=None):
    record = logging.LogRecord("interntrack.notifications", logging.INFO, __file__, 1, msg, None, None)
    if data is not None:
        record.data = data
    return record


def test_json_line_carries_request_context():
    tokens = [request_id_var.set("req-1"), user_id_var.set("mentor-1"), user_kind_var.set("CompanyAccount")]
    try:
        entry = json.loads(JSONFormatter().format(make_record(data={"recipient": "student-1"})))
    finally:
        for var, token in zip((request_id_var, user_id_var, user_kind_var), tokens):
            var.reset(token)

    assert entry["request_id"] == "req-1"
    assert (entry["user_id"], entry["user_kind"]) == ("mentor-1", "CompanyAccount")
    assert entry["data"] == {"recipient": "student-1"}
    assert entry["message"] == "Notification created"


def test_dev_line_shows_caller_only_inside_a_request():
    outside = DevFormatter().format(make_record())
    assert "[-]" in outside

    tokens = [user_id_var.set("mentor-1"), user_kind_var.set("CompanyAccount")]
    try:
        inside = DevFormatter().format(make_record())
    finally:
        user_id_var.reset(tokens[0])
        user_kind_var.reset(tokens[1])
    assert "CompanyAccount:mentor-1" in inside
