from unittest.mock import patch

from django.test import TestCase

from notifications.models import EmailTemplate, NotificationJob
from sales.tests.factories import make_store
from store.models import Customer


class WelcomeEmailSignalTests(TestCase):
    """
    GUARANTEES:
    - welcome_email_enabled gates the signup email
    - Only new customers get one (updates never re-send)
    - Queueing failures never block customer creation
    """

    def test_flag_off_sends_nothing(self):
        store = make_store()
        Customer.objects.create(store=store, email="new@example.com")

        self.assertFalse(NotificationJob.objects.exists())

    def test_flag_on_queues_signup_email_once(self):
        store = make_store(settings={"sales_settings": {"welcome_email_enabled": True}})

        customer = Customer.objects.create(store=store, email="new@example.com", first_name="Grace")
        customer.last_name = "Hopper"
        customer.save()

        job = NotificationJob.objects.get()
        self.assertEqual(job.template_identifier, EmailTemplate.SIGNUP)
        self.assertEqual(job.recipient_email, "new@example.com")
        self.assertEqual(job.variables["customer_first_name"], "Grace")

    def test_queue_failure_does_not_block_signup(self):
        store = make_store(settings={"sales_settings": {"welcome_email_enabled": True}})

        with patch("store.signals.get_dispatcher", side_effect=RuntimeError("outbox down")):
            customer = Customer.objects.create(store=store, email="new@example.com")

        self.assertTrue(Customer.objects.filter(id=customer.id).exists())
