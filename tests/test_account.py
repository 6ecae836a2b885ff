"""
Tests for the caller's own resources: emergency contacts, profile,
notification preferences and inbox.
"""

import pytest
from django.db import IntegrityError, transaction

from rindwa import policy
from rindwa.models import EmergencyContact, Notification

pytestmark = pytest.mark.django_db

CONTACTS_URL = '/api/contacts/'


def contact_payload(name, is_primary=False):
    return {'name': name, 'phone': '+250788000000', 'relationship': 'sibling', 'is_primary': is_primary}


# =============================================================
# EMERGENCY CONTACTS
# =============================================================

class TestEmergencyContacts:

    def test_create_and_list_own_contacts(self, client_for, citizen, make_user):
        other = make_user()
        EmergencyContact.objects.create(owner=other, name='Not mine', phone='1', relationship='friend')

        client = client_for(citizen)
        assert client.post(CONTACTS_URL, contact_payload('Mum'), format='json').status_code == 201
        response = client.get(CONTACTS_URL)
        assert [c['name'] for c in response.json()] == ['Mum']

    def test_new_primary_demotes_previous(self, client_for, citizen):
        client = client_for(citizen)
        first = client.post(CONTACTS_URL, contact_payload('Mum', is_primary=True), format='json').json()
        second = client.post(CONTACTS_URL, contact_payload('Dad', is_primary=True), format='json').json()

        primaries = EmergencyContact.objects.filter(owner=citizen, is_primary=True)
        assert [str(c.contact_id) for c in primaries] == [second['contact_id']]
        assert not EmergencyContact.objects.get(contact_id=first['contact_id']).is_primary

    def test_update_to_primary_demotes_previous(self, client_for, citizen):
        client = client_for(citizen)
        first = client.post(CONTACTS_URL, contact_payload('Mum', is_primary=True), format='json').json()
        second = client.post(CONTACTS_URL, contact_payload('Dad'), format='json').json()

        response = client.patch(f"{CONTACTS_URL}{second['contact_id']}/", {'is_primary': True}, format='json')
        assert response.status_code == 200
        assert EmergencyContact.objects.filter(owner=citizen, is_primary=True).count() == 1
        assert not EmergencyContact.objects.get(contact_id=first['contact_id']).is_primary

    def test_primary_is_per_owner(self, client_for, citizen, make_user):
        other = make_user()
        client_for(citizen).post(CONTACTS_URL, contact_payload('Mum', is_primary=True), format='json')
        client_for(other).post(CONTACTS_URL, contact_payload('Mum', is_primary=True), format='json')
        assert EmergencyContact.objects.filter(is_primary=True).count() == 2

    def test_database_refuses_two_primaries(self, citizen):
        EmergencyContact.objects.create(owner=citizen, name='A', phone='1', relationship='x', is_primary=True)
        with pytest.raises(IntegrityError), transaction.atomic():
            EmergencyContact.objects.create(owner=citizen, name='B', phone='2', relationship='x', is_primary=True)

    def test_other_owners_contact_is_forbidden(self, client_for, citizen, make_user):
        other = make_user()
        contact = EmergencyContact.objects.create(owner=other, name='Theirs', phone='1', relationship='friend')
        client = client_for(citizen)

        assert client.get(f'{CONTACTS_URL}{contact.pk}/').status_code == 403
        response = client.delete(f'{CONTACTS_URL}{contact.pk}/')
        assert response.status_code == 403
        assert response.json()['error'] == 'forbidden'
        assert EmergencyContact.objects.filter(pk=contact.pk).exists()

    def test_missing_contact_is_not_found(self, client_for, citizen):
        response = client_for(citizen).get(f'{CONTACTS_URL}00000000-0000-0000-0000-000000000000/')
        assert response.status_code == 404
        assert response.json()['error'] == 'not_found'

    def test_delete_own_contact(self, client_for, citizen):
        contact = EmergencyContact.objects.create(owner=citizen, name='Mine', phone='1', relationship='friend')
        assert client_for(citizen).delete(f'{CONTACTS_URL}{contact.pk}/').status_code == 204
        assert not EmergencyContact.objects.filter(pk=contact.pk).exists()


# =============================================================
# PROFILE
# =============================================================

class TestProfile:

    def test_profile_counts(self, client_for, citizen, make_incident, make_user):
        make_incident(reporter=citizen)
        other_report = make_incident()
        client = client_for(citizen)
        client.post(f'/api/incidents/{other_report.pk}/verify/')

        body = client.get('/api/profile/').json()
        assert body['reports_submitted'] == 1
        assert body['verifications_given'] == 1

    def test_role_cannot_be_self_assigned(self, client_for, citizen):
        response = client_for(citizen).patch('/api/profile/', {'full_name': 'Alice R.', 'role': policy.SUPER_ADMIN}, format='json')
        assert response.status_code == 200
        citizen.refresh_from_db()
        assert citizen.full_name == 'Alice R.'
        assert citizen.role == policy.CITIZEN


# =============================================================
# NOTIFICATIONS
# =============================================================

class TestNotificationInbox:

    def test_preferences_default_on_and_can_be_changed(self, client_for, citizen):
        client = client_for(citizen)
        url = '/api/profile/notification-preferences/'
        assert client.get(url).json()['incident_created'] is True

        response = client.patch(url, {'incident_created': False}, format='json')
        assert response.status_code == 200
        assert client.get(url).json()['incident_created'] is False

    def test_inbox_and_mark_read(self, client_for, citizen, make_user):
        other = make_user()
        mine = Notification.objects.create(recipient=citizen, title='t', message='m', category=Notification.INCIDENT_CREATED)
        Notification.objects.create(recipient=other, title='t', message='m', category=Notification.INCIDENT_CREATED)
        client = client_for(citizen)

        assert len(client.get('/api/notifications/').json()) == 1
        assert client.post(f'/api/notifications/{mine.pk}/read/').status_code == 200
        assert client.get('/api/notifications/', {'unread': 'true'}).json() == []

    def test_cannot_mark_someone_elses_notification(self, client_for, citizen, make_user):
        other = make_user()
        theirs = Notification.objects.create(recipient=other, title='t', message='m', category=Notification.INCIDENT_CREATED)
        response = client_for(citizen).post(f'/api/notifications/{theirs.pk}/read/')
        assert response.status_code == 403
        theirs.refresh_from_db()
        assert theirs.read is False
