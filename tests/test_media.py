"""
Tests for evidence uploads (Supabase Storage is mocked) and reverse geocoding.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from django.core.files.uploadedfile import SimpleUploadedFile

from rindwa import policy, services
from rindwa.models import IncidentMedia

pytestmark = pytest.mark.django_db


@pytest.fixture
def storage():
    client = MagicMock()
    with patch('rindwa.services.create_client', return_value=client) as create:
        client.create = create
        yield client


def media_url(incident):
    return f'/api/incidents/{incident.pk}/media/'


def photo():
    return SimpleUploadedFile('scene.JPG', b'\xff\xd8\xff fake jpeg', content_type='image/jpeg')


class TestMediaUpload:

    def test_reporter_attaches_photo(self, client_for, citizen, make_incident, storage):
        incident = make_incident(reporter=citizen)
        response = client_for(citizen).post(media_url(incident), {'uploaded_file': photo(), 'file_type': 'image'}, format='multipart')

        assert response.status_code == 201
        url = response.json()['file_url']
        assert url.startswith(f'https://project.supabase.co/storage/v1/object/public/incident-media/incidents/{incident.pk}/')
        assert url.endswith('.jpg')

        storage.storage.from_.assert_called_once_with('incident-media')
        path, content = storage.storage.from_.return_value.upload.call_args[0]
        assert url.endswith(path)
        assert content == b'\xff\xd8\xff fake jpeg'
        assert IncidentMedia.objects.get(incident=incident).uploaded_by == citizen
        storage.create.assert_called_once_with('https://project.supabase.co', 'service-role-key')

    def test_other_citizen_cannot_attach(self, client_for, citizen, make_incident, storage):
        incident = make_incident()
        response = client_for(citizen).post(media_url(incident), {'uploaded_file': photo(), 'file_type': 'image'}, format='multipart')
        assert response.status_code == 403
        storage.storage.from_.assert_not_called()

    def test_responsible_responder_can_attach(self, client_for, firefighter, make_incident, storage):
        incident = make_incident(category=policy.FIRE)
        response = client_for(firefighter).post(media_url(incident), {'uploaded_file': photo(), 'file_type': 'image'}, format='multipart')
        assert response.status_code == 201

    def test_storage_failure_is_validation_error(self, client_for, citizen, make_incident, storage):
        storage.storage.from_.return_value.upload.side_effect = RuntimeError('bucket full')
        incident = make_incident(reporter=citizen)
        response = client_for(citizen).post(media_url(incident), {'uploaded_file': photo(), 'file_type': 'image'}, format='multipart')
        assert response.status_code == 400
        assert not IncidentMedia.objects.exists()

    def test_list_media(self, client_for, citizen, make_incident):
        incident = make_incident()
        IncidentMedia.objects.create(incident=incident, file_url='https://x/y.jpg', file_type='image')
        response = client_for(citizen).get(media_url(incident))
        assert [m['file_url'] for m in response.json()] == ['https://x/y.jpg']

    def test_media_for_missing_incident(self, client_for, citizen):
        response = client_for(citizen).get('/api/incidents/00000000-0000-0000-0000-000000000000/media/')
        assert response.status_code == 404


class TestReverseGeocode:

    def test_disabled_without_api_key(self):
        with patch('rindwa.services.requests.get') as get:
            assert services.reverse_geocode(-1.94, 30.06) is None
        get.assert_not_called()

    def test_returns_first_formatted_address(self, settings):
        settings.GOOGLE_MAPS_API_KEY = 'maps-key'
        reply = MagicMock()
        reply.json.return_value = {'status': 'OK', 'results': [{'formatted_address': 'KN 3 Rd, Kigali'}]}
        with patch('rindwa.services.requests.get', return_value=reply) as get:
            assert services.reverse_geocode(-1.94, 30.06) == 'KN 3 Rd, Kigali'
        assert get.call_args[1]['params'] == {'latlng': '-1.94,30.06', 'key': 'maps-key'}

    def test_network_error_returns_none(self, settings):
        settings.GOOGLE_MAPS_API_KEY = 'maps-key'
        with patch('rindwa.services.requests.get', side_effect=requests.ConnectionError('offline')):
            assert services.reverse_geocode(-1.94, 30.06) is None

    def test_zero_results(self, settings):
        settings.GOOGLE_MAPS_API_KEY = 'maps-key'
        reply = MagicMock()
        reply.json.return_value = {'status': 'ZERO_RESULTS', 'results': []}
        with patch('rindwa.services.requests.get', return_value=reply):
            assert services.reverse_geocode(0, 0) is None
