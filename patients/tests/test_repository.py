from datetime import date

import pytest
from django.db import IntegrityError

from patients.exceptions import BadRequest, DuplicateEmailError
from patients.models import Patient
from patients.services.ages import calculate_age, today, years_ago
from patients.services.repository import _is_email_violation, age_expression, build_pagination, resolve_sort

pytestmark = pytest.mark.django_db


def test_create_normalises_email_and_trims(repo):
    p = repo.create({
        'name': '  Maria Costa ',
        'birth_date': date(1990, 7, 22),
        'email': ' Maria@Email.COM ',
        'address': ' Avenida Brasil, 456 ',
    })
    assert p.email == 'maria@email.com'
    assert p.name == 'Maria Costa'
    assert repo.find_by_email('MARIA@email.com').pk == p.pk


def test_duplicate_email_is_rejected_by_the_store(make_patient, repo):
    make_patient(email='dup@example.com')
    with pytest.raises(DuplicateEmailError):
        repo.create({
            'name': 'Other',
            'birth_date': date(1990, 1, 1),
            'email': 'DUP@example.com',
            'address': 'Somewhere 123 street',
        })


def test_email_exists_excludes_given_id(make_patient, repo):
    p = make_patient(email='me@example.com')
    assert repo.email_exists('me@example.com')
    assert not repo.email_exists('me@example.com', exclude_id=p.pk)


def test_resolve_sort_falls_back_for_unknown_values():
    assert resolve_sort('password; drop table', 'sideways') == ('created_at', 'desc')
    assert resolve_sort('birthDate', 'ASC') == ('birth_date', 'asc')
    assert resolve_sort('name', None) == ('name', 'desc')


def test_build_pagination():
    assert build_pagination(1, 10, 0) == {
        'page': 1, 'limit': 10, 'total': 0, 'totalPages': 0, 'hasNext': False, 'hasPrev': False,
    }
    assert build_pagination(2, 10, 25)['hasNext'] is True
    assert build_pagination(3, 10, 25)['hasNext'] is False
    assert build_pagination(3, 10, 25)['hasPrev'] is True


def test_search_matches_name_or_email_case_insensitively(make_patient, repo):
    make_patient(name='Carlos Ferreira', email='c.ferreira@example.com')
    make_patient(name='Ana Mendes', email='ana@carlos.org')
    make_patient(name='Roberto Lima', email='roberto@example.com')

    records, pagination = repo.find_all(search='carlos')
    assert pagination['total'] == 2
    assert {r.name for r in records} == {'Carlos Ferreira', 'Ana Mendes'}


def test_age_filters_use_whole_years(make_patient, repo):
    now = today()
    make_patient(name='Child', birth_date=years_ago(now, 10))
    make_patient(name='Adult', birth_date=years_ago(now, 40))
    make_patient(name='Senior', birth_date=years_ago(now, 70))

    records, _ = repo.find_all(min_age=18, max_age=64)
    assert [r.name for r in records] == ['Adult']
    records, _ = repo.find_all(max_age=10)
    assert [r.name for r in records] == ['Child']
    records, _ = repo.find_all(min_age=200)
    assert records == []


def test_pages_partition_the_filtered_set(make_patient, repo):
    for _ in range(23):
        make_patient()

    seen = []
    for page in (1, 2, 3):
        records, pagination = repo.find_all(page=page, limit=10, sort_by='name', sort_order='asc')
        seen.extend(r.pk for r in records)
        assert pagination['totalPages'] == 3
    assert len(seen) == 23
    assert len(set(seen)) == 23

    records, pagination = repo.find_all(page=4, limit=10)
    assert records == []
    assert pagination['hasNext'] is False


def test_update_changes_only_given_fields(make_patient, repo):
    p = make_patient(name='Before Name')
    updated = repo.update(p.pk, {'name': 'After Name'})
    assert updated.name == 'After Name'
    assert updated.email == p.email
    assert updated.updated_at >= p.updated_at


def test_update_requires_a_field(make_patient, repo):
    p = make_patient()
    with pytest.raises(BadRequest) as exc:
        repo.update(p.pk, {'unknown': 1})
    assert exc.value.code == 'NO_UPDATE_FIELDS'


def test_update_and_delete_missing_record(repo):
    missing = '00000000-0000-0000-0000-000000000000'
    assert repo.update(missing, {'name': 'X'}) is None
    assert repo.delete(missing) is False


def test_bulk_create_is_all_or_nothing(make_patient, repo):
    make_patient(email='taken@example.com')
    items = [
        {'name': 'First', 'birth_date': date(1980, 1, 1), 'email': 'first@example.com', 'address': 'Address number 1'},
        {'name': 'Second', 'birth_date': date(1981, 1, 1), 'email': 'taken@example.com', 'address': 'Address number 2'},
    ]
    with pytest.raises(DuplicateEmailError):
        repo.bulk_create(items)
    assert not Patient.objects.filter(email='first@example.com').exists()


def test_age_group_stats(make_patient, repo):
    as_of = date(2024, 6, 1)
    make_patient(birth_date=date(2010, 1, 1))   # 14
    make_patient(birth_date=date(1990, 1, 1))   # 34
    make_patient(birth_date=date(1950, 1, 1))   # 74

    stats = repo.age_group_stats(as_of)
    assert stats['total'] == 3
    assert (stats['minors'], stats['adults'], stats['seniors']) == (1, 1, 1)
    assert stats['minors'] + stats['adults'] + stats['seniors'] == stats['total']
    expected = round(sum(calculate_age(d, as_of) for d in (date(2010, 1, 1), date(1990, 1, 1), date(1950, 1, 1))) / 3, 1)
    assert stats['averageAge'] == expected


def test_age_group_stats_empty(repo):
    stats = repo.age_group_stats()
    assert stats['total'] == 0
    assert stats['averageAge'] is None


def test_age_group_stats_average_respects_birthdays(make_patient, repo, django_assert_num_queries):
    as_of = date(2024, 6, 1)
    births = (date(1990, 6, 1), date(1990, 6, 2), date(2000, 5, 31), date(2000, 2, 29))
    for d in births:
        make_patient(birth_date=d)

    with django_assert_num_queries(1):
        stats = repo.age_group_stats(as_of)
    assert stats['averageAge'] == round(sum(calculate_age(d, as_of) for d in births) / len(births), 1)

    ages = dict(Patient.objects.annotate(age=age_expression(as_of)).values_list('birth_date', 'age'))
    assert ages == {d: calculate_age(d, as_of) for d in births}


def test_email_check_violation_is_not_a_duplicate():
    assert not _is_email_violation(IntegrityError(
        'new row for relation "patients" violates check constraint "patients_email_format"'
    ))
    assert _is_email_violation(IntegrityError('UNIQUE constraint failed: patients.email'))
    assert _is_email_violation(IntegrityError(
        'duplicate key value violates unique constraint "patients_email_key"'
    ))
