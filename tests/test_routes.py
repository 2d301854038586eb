from io import BytesIO

import pytest
from openpyxl import load_workbook

from application.util import save_schedule_snapshot

KWALITY = 'Kwality House, Kemps Corner'

HISTORY_CSV = '\n'.join([
    'Location,Day of Week,Class Time,Cleaned Class,Teacher First Name,Teacher Last Name,'
    'Checked In,Participants,Total Revenue,Late Cancellations,Non Paid Customers,Tip',
    f'"{KWALITY}",Monday,09:00:00,Studio Barre 57,Anisha,Shah,9,10,4000,1,0,0',
    f'"{KWALITY}",Monday,09:00:00,Studio Barre 57,Anisha,Shah,9,12,5000,0,0,0',
    f'"{KWALITY}",Tuesday,18:00:00,Studio Mat 57,Rohan,Dahima,7,8,3500,0,0,0',
    f'"{KWALITY}",Tuesday,18:00:00,Studio Mat 57,Rohan,Dahima,7,9,3000,0,1,0',
    f'"{KWALITY}",Wednesday,07:00:00,Studio FIT,Nishanth,Kumar,12,12,6000,0,0,0',
])


def _upload_history(client, content=HISTORY_CSV, filename='history.csv'):
    return client.post('/api/upload/historic',
                       data={'historic_file': (BytesIO(content.encode('utf-8')), filename)},
                       content_type='multipart/form-data')


def _class(**overrides):
    payload = {
        'day': 'Thursday',
        'time': '09:00',
        'location': KWALITY,
        'classFormat': 'Studio Barre 57',
        'teacherFirstName': 'Anisha',
        'teacherLastName': 'Shah',
        'duration': 1,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def populated(client):
    assert _upload_history(client).status_code == 200
    response = client.post('/api/schedule/populate', json={})
    assert response.status_code == 200
    return response.get_json()


class TestUpload:

    def test_historic_upload(self, client):
        response = _upload_history(client)
        assert response.status_code == 200
        data = response.get_json()
        assert data['success']
        assert data['message'] == 'Processed 5 historic class records'
        assert data['filename'] == 'history.csv'

    def test_wrong_extension(self, client):
        response = _upload_history(client, filename='history.xlsx')
        assert response.status_code == 400
        assert 'historic_file' in response.get_json()['errors']

    def test_no_file(self, client):
        response = client.post('/api/upload/historic', data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'No file was uploaded'

    def test_missing_columns(self, client):
        response = _upload_history(client, content='Location,Day of Week\nKenkere House,Monday')
        assert response.status_code == 400
        assert 'Missing required columns' in response.get_json()['message']

    def test_scores_upload(self, client):
        content = '\n'.join([
            'Location\tDay of Week\tClass Time\tCleaned Class\tTrainer Name\tAdjusted Score\t'
            'Popularity\tConsistency\tTrainer Variance\tObservations',
            f'{KWALITY}\tMonday\t09:00:00\tStudio Barre 57\tAnisha Shah\t91\tHigh\tStable\t0.2\t',
        ])
        response = client.post('/api/upload/scores',
                               data={'scores_file': (BytesIO(content.encode('utf-8')), 'scores.tsv')},
                               content_type='multipart/form-data')
        assert response.status_code == 200
        assert response.get_json()['message'] == 'Processed 1 class score records'


class TestPopulate:

    def test_requires_history(self, client):
        response = client.post('/api/schedule/populate', json={})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Insufficient data for scheduling'

    def test_builds_active_schedule(self, client, populated):
        assert populated['success']
        assert populated['added'] == 2
        assert populated['statistics']['total_classes'] == 2
        assert {c['teacherFirstName'] for c in populated['classes']} == {'Anisha', 'Rohan'}

        response = client.get('/api/schedule')
        assert response.status_code == 200
        data = response.get_json()
        assert data['id'] == populated['schedule_id']
        assert data['source'] == 'populate'
        assert [c['day'] for c in data['classes']] == ['Monday', 'Tuesday']
        assert data['violations'] == []
        assert data['teacher_hours'] == {'Anisha Shah': 1.0, 'Rohan Dahima': 1.0}

    def test_target_day_option(self, client):
        _upload_history(client)
        response = client.post('/api/schedule/populate', json={'targetDay': 'Tuesday'})
        assert [c['day'] for c in response.get_json()['classes']] == ['Tuesday']

    def test_keeps_locked_classes(self, client, populated):
        locked_id = next(c['id'] for c in populated['classes'] if c['teacherFirstName'] == 'Rohan')
        response = client.put(f'/api/schedule/classes/{locked_id}', json={'isLocked': True})
        assert response.status_code == 200

        data = client.post('/api/schedule/populate', json={'targetDay': 'Monday'}).get_json()
        assert data['added'] == 1
        assert {c['id'] for c in data['classes'] if c['isLocked']} == {locked_id}
        assert len(data['classes']) == 2

    def test_invalid_options(self, client):
        response = client.post('/api/schedule/populate', json={'targetTeacherHours': 100})
        assert response.status_code == 400
        assert 'target_teacher_hours' in response.get_json()['error']

    def test_no_active_schedule(self, client):
        assert client.get('/api/schedule').status_code == 404


class TestFill:

    def test_fills_given_schedule(self, client):
        _upload_history(client)
        existing = [
            _class(id='keep-1', day='Friday', time='07:00', isLocked=True),
            _class(id='keep-2', day='Friday', time='18:00', teacherFirstName='Rohan', teacherLastName='Dahima'),
        ]
        response = client.post('/api/schedule/fill', json={'existingSchedule': existing})
        assert response.status_code == 200
        data = response.get_json()
        assert data['classes'][0]['id'] == 'keep-1'
        assert data['added'] == 2
        assert client.get('/api/schedule').get_json()['source'] == 'fill'

    def test_fills_active_schedule(self, client, populated):
        response = client.post('/api/schedule/fill', json={})
        data = response.get_json()
        assert data['added'] == 0
        assert data['skipped_by_rule'] == {'slot_taken': 2}
        assert len(data['classes']) == 2


class TestValidateEndpoint:

    def test_restricted_time(self, client):
        response = client.post('/api/schedule/validate', json={'existing': [], 'candidate': _class(time='14:00')})
        assert response.get_json() == {
            'isValid': False,
            'error': 'Weekday second shift classes must start at 5:00 PM or later (attempted: 14:00)',
            'canOverride': False,
        }

    def test_valid_candidate(self, client):
        response = client.post('/api/schedule/validate', json={'existing': [], 'candidate': _class()})
        assert response.get_json() == {'isValid': True}

    def test_missing_candidate(self, client):
        assert client.post('/api/schedule/validate', json={}).status_code == 400


class TestClassEditing:

    def test_add_class(self, client, populated):
        response = client.post('/api/schedule/classes', json=_class())
        assert response.status_code == 201
        created = response.get_json()['class']
        assert created['id'].startswith('manual-')
        assert len(client.get('/api/schedule').get_json()['classes']) == 3

    def test_add_class_without_schedule(self, client):
        response = client.post('/api/schedule/classes', json=_class(id='first'))
        assert response.status_code == 201
        assert client.get('/api/schedule').get_json()['source'] == 'manual'

    def test_conflict_is_rejected(self, client, populated):
        response = client.post('/api/schedule/classes',
                               json=_class(day='Monday', time='09:30', override=True))
        assert response.status_code == 409
        assert response.get_json()['canOverride'] is False

    def test_incomplete_class(self, client):
        response = client.post('/api/schedule/classes', json=_class(day='Funday'))
        assert response.status_code == 400
        assert 'Invalid day' in response.get_json()['error']

    def test_weekly_cap_override(self, client, make_entry):
        days = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
        entries = [make_entry(day=day, time=time) for day in days for time in ('07:00', '09:00')]
        save_schedule_snapshot(entries + [make_entry(day='Monday', time='17:00')], 'manual')

        candidate = _class(day='Tuesday', time='17:00')
        response = client.post('/api/schedule/classes', json=candidate)
        assert response.status_code == 409
        assert response.get_json()['canOverride'] is True

        response = client.post('/api/schedule/classes', json={**candidate, 'override': True})
        assert response.status_code == 201
        assert response.get_json()['verdict']['canOverride'] is True

    @pytest.mark.parametrize('candidate,error', [
        (_class(day='Sunday', time='18:00'), 'Sunday classes'),
        (_class(day='Monday', time='19:00', classFormat='Studio Recovery', duration=0.5), 'Recovery classes'),
    ])
    def test_override_does_not_bypass_hard_rules(self, client, make_entry, candidate, error):
        days = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
        entries = [make_entry(day=day, time=time) for day in days for time in ('07:00', '09:00')]
        entries += [make_entry(day='Monday', time='17:00')]
        entries += [make_entry(day='Sunday', time=time, teacher_first_name='Rohan', teacher_last_name='Dahima')
                    for time in ('17:00', '19:00', '20:00')]
        save_schedule_snapshot(entries, 'manual')

        response = client.post('/api/schedule/classes', json={**candidate, 'override': True})
        assert response.status_code == 409
        assert response.get_json()['canOverride'] is False
        assert error in response.get_json()['error']
        assert len(client.get('/api/schedule').get_json()['classes']) == len(entries)

        verdict = client.post('/api/schedule/validate', json={'candidate': candidate}).get_json()
        assert verdict['canOverride'] is False

    def test_duplicate_id_is_rejected(self, client, populated):
        assert client.post('/api/schedule/classes', json=_class(id='dup-1')).status_code == 201
        response = client.post('/api/schedule/classes', json=_class(id='dup-1', time='18:00'))
        assert response.status_code == 409
        assert 'already exists' in response.get_json()['error']
        classes = client.get('/api/schedule').get_json()['classes']
        assert [c['time'] for c in classes if c['id'] == 'dup-1'] == ['09:00']

    def test_update_class(self, client, populated):
        entry_id = populated['classes'][0]['id']
        response = client.put(f'/api/schedule/classes/{entry_id}', json={'time': '07:00'})
        assert response.status_code == 200
        assert response.get_json()['class']['time'] == '07:00'

        classes = client.get('/api/schedule').get_json()['classes']
        assert {c['time'] for c in classes if c['id'] == entry_id} == {'07:00'}

    def test_update_to_restricted_time(self, client, populated):
        entry_id = populated['classes'][0]['id']
        response = client.put(f'/api/schedule/classes/{entry_id}', json={'time': '13:00'})
        assert response.status_code == 409

    def test_update_missing_class(self, client, populated):
        assert client.put('/api/schedule/classes/nope', json={'time': '07:00'}).status_code == 404

    def test_delete_class(self, client, populated):
        entry_id = populated['classes'][0]['id']
        assert client.delete(f'/api/schedule/classes/{entry_id}').status_code == 204
        assert client.delete(f'/api/schedule/classes/{entry_id}').status_code == 404
        assert len(client.get('/api/schedule').get_json()['classes']) == 1

    def test_clear_schedule(self, client, populated):
        assert client.delete('/api/schedule').status_code == 200
        assert client.get('/api/schedule').get_json()['classes'] == []


class TestHistory:

    def test_history_and_activate(self, client, populated):
        second = client.post('/api/schedule/populate', json={'targetDay': 'Monday'}).get_json()

        history = client.get('/api/schedule/history').get_json()
        assert history['total_count'] == 2
        assert history['results'][0]['id'] == second['schedule_id']
        assert history['results'][0]['active']
        assert history['results'][0]['class_count'] == 1

        response = client.post(f"/api/schedule/{populated['schedule_id']}/activate")
        assert response.status_code == 200
        assert client.get('/api/schedule').get_json()['id'] == populated['schedule_id']

    def test_invalid_page(self, client):
        assert client.get('/api/schedule/history?page=3').status_code == 400
        assert client.get('/api/schedule/history?results=0').status_code == 400

    def test_activate_missing(self, client):
        assert client.post('/api/schedule/99/activate').status_code == 404


class TestReports:

    def test_teacher_hours(self, client, populated):
        data = client.get('/api/reports/teacher-hours').get_json()
        assert data['teacher_hours'] == {'Anisha Shah': 1.0, 'Rohan Dahima': 1.0}
        assert data['priority_shortfall']['Anisha Shah'] == 11.0

    def test_class_counts(self, client, populated):
        assert client.get('/api/reports/class-counts').get_json()['counts'] == {
            'Studio Barre 57': 1, 'Studio Mat 57': 1
        }
        assert client.get('/api/reports/class-counts?day=Monday').get_json()['counts'] == {'Studio Barre 57': 1}
        assert client.get('/api/reports/class-counts?day=Funday').status_code == 400

    def test_teacher_specialties(self, client, populated):
        data = client.get('/api/reports/teacher-specialties/Anisha%20Shah').get_json()
        assert data['specialties'] == ['Studio Barre 57']

    def test_slot_analysis(self, client, populated):
        query = {'location': KWALITY, 'day': 'Monday', 'time': '09:00', 'classFormat': 'Studio Barre 57'}
        response = client.get('/api/reports/slot-analysis', query_string=query)
        assert response.status_code == 200
        data = response.get_json()
        assert data['total_classes'] == 2
        assert data['revenue_per_class'] == 4500.0
        assert data['best_teacher'] == 'Anisha Shah'

    def test_slot_analysis_errors(self, client, populated):
        assert client.get('/api/reports/slot-analysis?day=Monday').status_code == 400
        query = {'location': KWALITY, 'day': 'Sunday', 'time': '09:00'}
        assert client.get('/api/reports/slot-analysis', query_string=query).status_code == 404


class TestInstructors:

    def test_set_tier(self, client):
        response = client.put('/api/instructors/Shruti%20Kulkarni', json={'tier': 'new'})
        assert response.status_code == 200
        assert client.get('/api/instructors').get_json() == [
            {'id': response.get_json()['id'], 'name': 'Shruti Kulkarni', 'tier': 'new'}
        ]

    def test_invalid_tier(self, client):
        assert client.put('/api/instructors/Shruti', json={'tier': 'boss'}).status_code == 400


class TestExport:

    def test_no_classes(self, client):
        assert client.post('/api/export-excel', json={}).status_code == 400

    def test_active_schedule_workbook(self, client, populated):
        response = client.post('/api/export-excel', json={})
        assert response.status_code == 200
        assert response.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

        workbook = load_workbook(BytesIO(response.data))
        assert workbook.sheetnames == ['Kwality House Kemps Corner']
        sheet = workbook['Kwality House Kemps Corner']
        assert sheet['B1'].value == 'Monday'
        assert sheet['A10'].value == '09:00'
        assert sheet['B10'].value == 'Studio Barre 57 - Anisha Shah (60 min)'

    def test_posted_classes(self, client):
        response = client.post('/api/export-excel', json={'classes': [_class(location='Kenkere House')]})
        workbook = load_workbook(BytesIO(response.data))
        assert workbook.sheetnames == ['Kenkere House']


class TestTimetable:

    def test_generate_and_download(self, client):
        _upload_history(client)
        response = client.post('/timetable/generate-schedule', json={})
        assert response.status_code == 200
        data = response.get_json()
        assert data['success']
        assert data['statistics']['total_classes'] == 2
        assert data['csv_filename'].startswith('class_schedule_')

        download = client.get(f"/timetable/download-schedule/{data['csv_filename']}")
        assert download.status_code == 200
        assert download.data.startswith(b'Location,Day,Time,Class,Teacher')

    def test_download_missing(self, client):
        assert client.get('/timetable/download-schedule/missing.csv').status_code == 404
