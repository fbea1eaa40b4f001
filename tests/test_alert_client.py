import unittest
from datetime import date
from unittest.mock import MagicMock

import requests

from cadence.alerts import Deadline
from cadence.models import CadenceItem, ItemStatus
from connector.alert_client import AlertAPIError, AlertAuthError, AlertServiceClient


def _response(status_code: int, payload=None, text: str = "") -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class AlertServiceClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = MagicMock(spec=requests.Session)
        self.session.post.return_value = _response(200, {"access_token": "token-1", "expires_in": 3600})
        self.session.request.return_value = _response(202)
        self.client = AlertServiceClient(
            base_url="https://alerts.example.com/api/",
            token_url="https://auth.example.com/oauth2/token",
            client_id="cadence",
            client_secret="secret",
            timeout=10,
            session=self.session,
        )
        self.items = [
            CadenceItem(id=4, patient_id=1, practice_id=2, test_order_id=3, cadence_date=date(2024, 3, 4),
                        blood_collection_method="Mobile Phlebotomy", item_status=ItemStatus.PENDING),
        ]

    def test_create_alerts_posts_batch(self) -> None:
        self.client.create_alerts(Deadline(30), self.items)

        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "POST")
        self.assertEqual(kwargs["url"], "https://alerts.example.com/api/alerts")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer token-1")
        self.assertLessEqual(kwargs["timeout"], 10)
        self.assertEqual(
            kwargs["json"],
            {
                "alerts": [
                    {
                        "type": "blood_collection_due",
                        "cadence_item_id": 4,
                        "patient_id": 1,
                        "practice_id": 2,
                        "test_order_id": 3,
                        "due_date": "2024-03-04",
                        "collection_method": "Mobile Phlebotomy",
                    }
                ]
            },
        )

    def test_token_is_cached(self) -> None:
        self.client.create_alerts(Deadline(30), self.items)
        self.client.create_alerts(Deadline(30), self.items)

        self.assertEqual(self.session.post.call_count, 1)
        self.assertEqual(self.session.request.call_count, 2)

    def test_timeout_is_clamped_to_deadline(self) -> None:
        self.client.create_alerts(Deadline(2), self.items)

        self.assertLessEqual(self.session.request.call_args.kwargs["timeout"], 2)

    def test_unexpected_status_raises(self) -> None:
        self.session.request.return_value = _response(500, text="upstream down")

        with self.assertRaises(AlertAPIError):
            self.client.create_alerts(Deadline(30), self.items)

    def test_network_failure_raises(self) -> None:
        self.session.request.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(AlertAPIError):
            self.client.create_alerts(Deadline(30), self.items)

    def test_token_failure_raises(self) -> None:
        self.session.post.return_value = _response(401)

        with self.assertRaises(AlertAuthError):
            self.client.create_alerts(Deadline(30), self.items)
        self.session.request.assert_not_called()

    def test_expired_deadline_sends_nothing(self) -> None:
        with self.assertRaises(AlertAPIError):
            self.client.create_alerts(Deadline(0), self.items)

        self.session.post.assert_not_called()
        self.session.request.assert_not_called()

    def test_empty_batch_is_a_no_op(self) -> None:
        self.client.create_alerts(Deadline(30), [])

        self.session.request.assert_not_called()

    def test_requires_configuration(self) -> None:
        with self.assertRaises(ValueError):
            AlertServiceClient(base_url="", token_url="https://auth", client_id="a", client_secret="b")
        with self.assertRaises(ValueError):
            AlertServiceClient(base_url="https://alerts", token_url="https://auth", client_id=None, client_secret="b")


if __name__ == "__main__":
    unittest.main()
