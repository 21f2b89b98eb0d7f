from app.services.notification_service import NotificationService, send_order_notification_task


def test_notification_task_runs_inline():
    result = send_order_notification_task.delay(1, 2, "PAID")

    assert result.get() == {"user_id": 1, "order_id": 2, "event": "PAID", "status": "sent"}


def test_notification_service_logs_event(caplog):
    NotificationService.send_order_refunded_notification(7, 42)

    assert "[NOTIFICATION] User 7: Order 42 REFUNDED" in caplog.text
