"""
Tests for aggregating scraped law records.
"""

import json

import pytest

from law_scraper.aggregator import ResultAggregator
from law_scraper.errors import ConfigurationError


def write_record(directory, law_id, text_length=1000, complete=True, scraped_at='2025-01-01T00:00:00+00:00'):
    record = {
        'title': f'Закон {law_id}',
        'lawId': str(law_id),
        'fullText': 'т' * text_length,
        'textLength': text_length,
        'isComplete': complete,
        'scrapedAt': scraped_at,
    }
    (directory / f'{law_id}.json').write_text(json.dumps(record, ensure_ascii=False), encoding='utf-8')


@pytest.fixture
def scraped_dir(tmp_path):
    directory = tmp_path / 'scraped_laws'
    directory.mkdir()
    return directory


class TestResultAggregator:
    """Test dataset aggregation and the text report."""

    def test_one_corrupt_file_among_ten(self, tmp_path, scraped_dir):
        for n in range(9):
            write_record(scraped_dir, n, text_length=1000 + n, scraped_at=f'2025-01-0{n + 1}T00:00:00+00:00')
        (scraped_dir / '99.json').write_text('{"title": ', encoding='utf-8')
        aggregator = ResultAggregator(scraped_dir, tmp_path / 'aggregated_results.json', tmp_path / 'failed.json')

        result = aggregator.aggregate()

        metadata = result['metadata']
        assert metadata['totalScrapedLaws'] == 10
        assert metadata['errorLaws'] == 1
        assert metadata['statistics']['parseErrors'] == 1
        assert metadata['successfulLaws'] == 9
        assert len(result['scrapedLaws']) == 9
        assert (tmp_path / 'aggregated_results.json').exists()

    def test_statistics_use_complete_records_only(self, tmp_path, scraped_dir):
        write_record(scraped_dir, 1, text_length=100)
        write_record(scraped_dir, 2, text_length=300)
        write_record(scraped_dir, 3, text_length=20, complete=False)
        aggregator = ResultAggregator(scraped_dir, tmp_path / 'out.json', tmp_path / 'failed.json')

        stats = aggregator.aggregate()['metadata']['statistics']

        assert stats['successful'] == 2
        assert stats['withErrors'] == 1
        assert stats['minTextLength'] == 100
        assert stats['maxTextLength'] == 300
        assert stats['averageTextLength'] == 200
        assert stats['totalTextLength'] == 400

    def test_sorted_newest_first_and_failures_merged(self, tmp_path, scraped_dir):
        write_record(scraped_dir, 1, scraped_at='2025-01-01T00:00:00+00:00')
        write_record(scraped_dir, 2, scraped_at='2025-03-01T00:00:00+00:00')
        failed_log = tmp_path / 'failed.json'
        failed_log.write_text(json.dumps([{'lawId': '7', 'title': 'Закон 7', 'error': 'Timeout'}]), encoding='utf-8')
        aggregator = ResultAggregator(scraped_dir, tmp_path / 'out.json', failed_log)

        result = aggregator.aggregate()

        assert [law['lawId'] for law in result['scrapedLaws']] == ['2', '1']
        assert result['metadata']['failedLaws'] == 1
        assert result['failedLaws'][0]['error'] == 'Timeout'

    def test_text_length_is_recomputed_from_full_text(self, tmp_path, scraped_dir):
        write_record(scraped_dir, 1, text_length=120)
        record_path = scraped_dir / '1.json'
        record = json.loads(record_path.read_text(encoding='utf-8'))
        record['textLength'] = 999999
        record_path.write_text(json.dumps(record, ensure_ascii=False), encoding='utf-8')

        result = ResultAggregator(scraped_dir, tmp_path / 'out.json', tmp_path / 'failed.json').aggregate()

        assert result['metadata']['statistics']['maxTextLength'] == 120
        assert result['scrapedLaws'][0]['textLength'] == 120

    def test_failures_of_recorded_laws_are_dropped(self, tmp_path, scraped_dir):
        write_record(scraped_dir, 1)
        failed_log = tmp_path / 'failed.json'
        failed_log.write_text(json.dumps([
            {'lawId': '1', 'title': 'Закон 1', 'error': 'Timeout'},
            {'lawId': '7', 'title': 'Закон 7', 'error': 'Timeout'},
            {'lawId': '7', 'title': 'Закон 7', 'error': 'Text failed validation: truncated'},
        ]), encoding='utf-8')
        aggregator = ResultAggregator(scraped_dir, tmp_path / 'out.json', failed_log)

        result = aggregator.aggregate()
        report = ResultAggregator.create_text_report(result)

        assert result['metadata']['failedLaws'] == 1
        assert result['failedLaws'] == [{'lawId': '7', 'title': 'Закон 7', 'error': 'Text failed validation: truncated'}]
        assert "Overall Success Rate: 50.00%" in report

    def test_report_is_written_beside_output(self, tmp_path, scraped_dir):
        write_record(scraped_dir, 1, text_length=1234)
        failed_log = tmp_path / 'failed.json'
        failed_log.write_text(json.dumps([{'lawId': '7', 'title': 'Закон 7', 'error': 'Timeout'}]), encoding='utf-8')
        aggregator = ResultAggregator(scraped_dir, tmp_path / 'aggregated_results.json', failed_log)

        report = aggregator.generate_report()

        assert (tmp_path / 'aggregated_results_report.txt').read_text(encoding='utf-8') == report
        assert "SUMMARY" in report
        assert "Total Text Length: 1,234 characters" in report
        assert "Overall Success Rate: 50.00%" in report
        assert "Completion Rate: 100.00%" in report
        assert "- 7: Закон 7 (Timeout)" in report

    def test_empty_directory(self, tmp_path, scraped_dir):
        result = ResultAggregator(scraped_dir, tmp_path / 'out.json', tmp_path / 'failed.json').aggregate()
        report = ResultAggregator.create_text_report(result)

        assert result['metadata']['totalScrapedLaws'] == 0
        assert "Completion Rate: 0.00%" in report
        assert "FAILED LAWS BREAKDOWN" not in report

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ResultAggregator(tmp_path / 'missing', tmp_path / 'out.json').aggregate()
