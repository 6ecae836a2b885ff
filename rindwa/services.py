# rindwa/services.py
import logging
import os
import uuid
from datetime import timedelta

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Avg, Count, DurationField, ExpressionWrapper, F
from django.utils import timezone
from supabase import create_client

from . import policy
from .exceptions import ValidationError
from .models import Incident

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
GEOCODE_TIMEOUT_SECONDS = 5

# Supabase client is created on first use so the app (and tests) can start
# without storage credentials
_supabase = None


# ---------- Location ----------

def reverse_geocode(latitude, longitude):
    """Calls Google Maps Geocoding API to turn coordinates into a street address."""
    api_key = settings.GOOGLE_MAPS_API_KEY
    if not api_key or latitude is None or longitude is None:
        return None  # Cannot geocode without key or coordinates

    params = {
        'latlng': f'{latitude},{longitude}',
        'key': api_key,
    }

    try:
        response = requests.get(GEOCODE_URL, params=params, timeout=GEOCODE_TIMEOUT_SECONDS)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Geocoding failed for %s,%s: %s", latitude, longitude, e)
        return None

    if data.get('status') != 'OK':
        logger.info("Geocoding returned status %s for %s,%s", data.get('status'), latitude, longitude)
        return None

    # First result is the most specific match
    for result in data.get('results', []):
        address = result.get('formatted_address')
        if address:
            return address
    return None


# ---------- Media storage ----------

def get_supabase_client():
    global _supabase
    if _supabase is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ImproperlyConfigured("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for media uploads.")
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return _supabase


def media_object_path(incident_id, filename):
    # UUID file name avoids collisions; keep the original extension
    _, ext = os.path.splitext(filename or "")
    return f"incidents/{incident_id}/{uuid.uuid4().hex}{ext.lower()}"


def upload_incident_media(incident, uploaded_file):
    """Upload a file to the media bucket and return its public URL."""
    bucket = settings.SUPABASE_MEDIA_BUCKET
    object_path = media_object_path(incident.pk, uploaded_file.name)

    try:
        content = uploaded_file.read()
        get_supabase_client().storage.from_(bucket).upload(object_path, content)
    except ImproperlyConfigured:
        raise
    except Exception as e:
        # Storage refused it (policy denial, size limit, network); tell the client
        logger.warning("Media upload for incident %s failed: %s", incident.pk, e)
        raise ValidationError({"upload": f"Media upload failed: {e}"})

    # Public bucket URL: [BASE_URL]/storage/v1/object/public/[BUCKET]/[OBJECT_PATH]
    base = settings.SUPABASE_URL.rstrip("/")
    return f"{base}/storage/v1/object/public/{bucket}/{object_path}"


# ---------- Shared analytics helpers ----------

def parse_filters(request):
    try:
        days = int(request.query_params.get('days', 30))
    except ValueError:
        raise ValidationError({"days": "Must be a whole number."})
    if days < 1:
        raise ValidationError({"days": "Must be at least 1."})

    category = request.query_params.get('category')  # None or specific, treat 'all' as None
    if category and category.lower() == 'all':
        category = None

    since = timezone.now() - timedelta(days=days)
    return {
        'days': days,
        'since': since,
        'category': category,
    }


def apply_common_filters(qs, f, allowed_categories=None):
    qs = qs.filter(created_at__gte=f['since'])

    # None = no restriction (super admin); a set = only those categories
    if allowed_categories is not None:
        qs = qs.filter(category__in=allowed_categories)

    if f['category']:
        qs = qs.filter(category__iexact=f['category'])

    return qs


def format_duration(delta):
    # "1d 02:00:00", or just the clock part under a day
    if not delta:
        return "N/A"
    days, rest = divmod(int(delta.total_seconds()), 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    clock = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{days}d {clock}" if days else clock


def compute_avg_resolution(qs):
    resolution_delta = ExpressionWrapper(F('resolved_at') - F('created_at'), output_field=DurationField())
    avg_res = qs.filter(resolved_at__isnull=False).annotate(res_time=resolution_delta).aggregate(avg=Avg('res_time'))['avg']
    return format_duration(avg_res)


def count_by(qs, field, choices):
    counts = {value: 0 for value, _ in choices}
    for row in qs.values(field).annotate(total=Count('incident_id')).order_by():
        counts[row[field]] = row['total']
    return counts


def build_summary(f, allowed_categories=None):
    base = apply_common_filters(Incident.objects.all(), f, allowed_categories)
    return {
        'filters': {k: (str(v) if v is not None else None) for k, v in f.items()},
        'total': base.count(),
        'by_status': count_by(base, 'status', Incident.STATUS_CHOICES),
        'by_category': count_by(base, 'category', policy.CATEGORY_CHOICES),
        'average_resolution_time': compute_avg_resolution(base.filter(status=Incident.RESOLVED)),
    }
