# donors/management/commands/import_donors.py
"""
Django management command to import donor data from Excel or CSV
Usage: python manage.py import_donors path/to/donors.xlsx
"""

from pathlib import Path

import pandas as pd
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import IntegrityError, transaction

from algorithms.blood_compatibility import ABO_TYPES, RH_FACTORS
from donors.models import DonorProfile

User = get_user_model()


def split_blood_group(value):
    """'AB-' -> ('AB', '-'); raises ValueError for anything else"""
    label = str(value).strip().upper()
    abo, rh = label[:-1], label[-1:]
    if abo not in ABO_TYPES or rh not in RH_FACTORS:
        raise ValueError(f'Invalid blood group {value!r}')
    return abo, rh


def optional_float(value):
    return float(value) if pd.notna(value) else None


TRUE_FLAGS = {'true', 'yes', 'y', '1', 'available'}
FALSE_FLAGS = {'false', 'no', 'n', '0', 'unavailable'}


def parse_flag(value, default=True):
    """Read yes/no style cells; blank means default"""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return default
        if text in TRUE_FLAGS:
            return True
        if text in FALSE_FLAGS:
            return False
        raise ValueError(f'Cannot read {value!r} as yes/no')
    return bool(value)


def unique_username(email):
    """Local part of the email, suffixed when already taken"""
    base = email.split('@')[0][:140]
    username = base
    suffix = 1
    while User.objects.filter(username=username).exists():
        suffix += 1
        username = f'{base}{suffix}'
    return username


class Command(BaseCommand):
    help = 'Import donors from an Excel or CSV file'

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Path to the .xlsx/.xls/.csv file')

    def read_frame(self, path):
        if path.suffix.lower() == '.csv':
            return pd.read_csv(path, dtype={'phone': str})
        return pd.read_excel(path, dtype={'phone': str})

    def handle(self, *args, **options):
        path = Path(options['path'])
        if not path.exists():
            raise CommandError(f'File not found: {path}')

        self.stdout.write(self.style.WARNING(f'Starting import from {path}...'))

        df = self.read_frame(path)
        self.stdout.write(f'Found {len(df)} rows')

        # Clean data (remove rows with missing critical data)
        df = df.dropna(subset=['full_name', 'email', 'blood_group'])

        imported_count = 0
        updated_count = 0
        skipped_count = 0

        # Use transaction for atomicity
        with transaction.atomic():
            for index, row in df.iterrows():
                line = index + 2
                try:
                    abo, rh = split_blood_group(row['blood_group'])
                    latitude = optional_float(row.get('latitude'))
                    longitude = optional_float(row.get('longitude'))
                    response_rate = optional_float(row.get('response_rate'))
                    if response_rate is not None and not 0 <= response_rate <= 1:
                        raise ValueError(f'response_rate {response_rate} outside 0-1')
                    available = parse_flag(row.get('available'))
                except ValueError as e:
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: {e}'))
                    skipped_count += 1
                    continue

                email = str(row['email']).strip().lower()
                donation_count = row.get('donation_count')

                try:
                    with transaction.atomic():
                        user = User.objects.filter(email=email).first()
                        if user is None:
                            user = User(email=email, username=unique_username(email), user_type='donor')
                            # Donors set a password through the reset flow
                            user.set_unusable_password()
                            user.save()

                        donor, created = DonorProfile.objects.update_or_create(
                            user=user,
                            defaults={
                                'full_name': str(row['full_name']).strip(),
                                'phone': str(row['phone']) if pd.notna(row.get('phone')) else '',
                                'abo_type': abo,
                                'rh': rh,
                                'latitude': latitude,
                                'longitude': longitude,
                                'donation_count': int(donation_count) if pd.notna(donation_count) else None,
                                'response_rate': response_rate,
                                'availability': (
                                    DonorProfile.AVAILABLE if available else DonorProfile.UNAVAILABLE
                                ),
                            }
                        )
                except IntegrityError as e:
                    self.stdout.write(self.style.WARNING(f'Skipping row {line}: {e}'))
                    skipped_count += 1
                    continue

                if created:
                    imported_count += 1
                    self.stdout.write(f'Created: {donor.full_name} ({donor.blood_type}) - {user.email}')
                else:
                    updated_count += 1
                    self.stdout.write(f'Updated: {donor.full_name} ({donor.blood_type})')

        self.stdout.write(
            self.style.SUCCESS(
                f'\nImport complete!\n'
                f'Created: {imported_count}\n'
                f'Updated: {updated_count}\n'
                f'Skipped: {skipped_count}'
            )
        )
