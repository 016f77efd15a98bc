"""
Unit tests for job file readers (stagebackup/properties.py).
"""

from stagebackup.properties import (
    load_properties,
    parse_properties,
    read_backup_list,
    split_property_string
)


class TestParseProperties:
    """Test parsing of job file text."""

    def test_simple_pairs(self):
        props = parse_properties("a=1\nb = two\n")

        assert props == {'a': '1', 'b': 'two'}

    def test_comments_and_blank_lines_skipped(self):
        props = parse_properties("# comment\n! also a comment\n\nkey=value\n")

        assert props == {'key': 'value'}

    def test_continuation_lines_joined(self):
        """Trailing backslash joins the next line without its indentation."""
        text = (
            "instruction_0=remote_staged_file=photos.tgz,\\\n"
            "    arg=/var/www/photos,\\\n"
            "    arg=photos.tgz\n"
        )
        props = parse_properties(text)

        assert props['instruction_0'] == 'remote_staged_file=photos.tgz,arg=/var/www/photos,arg=photos.tgz'

    def test_value_keeps_later_separators(self):
        """Only the first separator splits key from value."""
        props = parse_properties("file_retriever=type=ssh,user=backup\n")

        assert props['file_retriever'] == 'type=ssh,user=backup'

    def test_colon_separator(self):
        props = parse_properties("key: value\n")

        assert props == {'key': 'value'}

    def test_key_without_value(self):
        props = parse_properties("lonely\n")

        assert props == {'lonely': ''}

    def test_later_key_wins(self):
        props = parse_properties("a=1\na=2\n")

        assert props == {'a': '2'}

    def test_escaped_backslash_is_not_continuation(self):
        props = parse_properties("path=C:\\\\\nnext=1\n")

        assert props['next'] == '1'

    def test_load_properties_from_file(self, tmp_path):
        path = tmp_path / 'job.properties'
        path.write_text("archive_schedule=days_till_purge=5\n")

        assert load_properties(path) == {'archive_schedule': 'days_till_purge=5'}

    def test_load_properties_latin1(self, tmp_path):
        path = tmp_path / 'job.properties'
        path.write_bytes(b'# caf\xe9\nlocal_backup_dir=/srv/caf\xe9\n')

        assert load_properties(path) == {'local_backup_dir': '/srv/café'}


class TestSplitPropertyString:
    """Test splitting of comma-delimited property strings."""

    def test_ordered_pairs(self):
        pairs = split_property_string('remote_staged_file=a.tgz,arg=one,arg=two')

        assert pairs == [('remote_staged_file', 'a.tgz'), ('arg', 'one'), ('arg', 'two')]

    def test_value_may_contain_equals(self):
        pairs = split_property_string('arg=--level=9')

        assert pairs == [('arg', '--level=9')]

    def test_empty_tokens_skipped(self):
        assert split_property_string('a=1,,b=2,') == [('a', '1'), ('b', '2')]

    def test_empty_or_none(self):
        assert split_property_string('') == []
        assert split_property_string(None) == []


class TestReadBackupList:
    """Test reading the list of job files."""

    def test_reads_paths_in_order(self, tmp_path):
        path = tmp_path / 'backups.list'
        path.write_text("/etc/stagebackup/a.properties\n\n# disabled\n/etc/stagebackup/b.properties\n")

        assert read_backup_list(path) == [
            '/etc/stagebackup/a.properties',
            '/etc/stagebackup/b.properties'
        ]
