import pytest

from fsadapters.utils.entry import Entry, make_entry, pathinfo
from fsadapters.utils.mime import DEFAULT_MIMETYPE, guess_mimetype


def test_pathinfo():
    assert pathinfo('test2/test.txt') == {
        'dirname': 'test2',
        'basename': 'test.txt',
        'filename': 'test',
        'extension': 'txt',
    }


def test_pathinfo_at_root_without_extension():
    info = pathinfo('README')
    assert info['dirname'] == ''
    assert info['filename'] == 'README'
    assert info['extension'] == ''


def test_pathinfo_uses_last_dot():
    info = pathinfo('archive/data.tar.gz')
    assert info['filename'] == 'data.tar'
    assert info['extension'] == 'gz'


def test_make_entry_strips_trailing_separator():
    entry = make_entry('test2/test31/', 'dir')
    assert entry.path == 'test2/test31'
    assert entry.dirname == 'test2'
    assert entry.basename == 'test31'
    assert entry.is_dir
    assert not entry.is_file


def test_directory_cannot_carry_size_or_contents():
    with pytest.raises(ValueError):
        Entry(path='test', type='dir', size=0)
    with pytest.raises(ValueError):
        Entry(path='test', type='dir', contents='')


def test_invalid_type_rejected():
    with pytest.raises(ValueError):
        Entry(path='test', type='link')


def test_as_dict_skips_unset_fields():
    entry = make_entry('test/1.txt', 'file', size=4)
    assert entry.as_dict() == {
        'path': 'test/1.txt',
        'type': 'file',
        'dirname': 'test',
        'basename': '1.txt',
        'filename': '1',
        'extension': 'txt',
        'size': 4,
    }


def test_guess_mimetype():
    assert guess_mimetype('test/1.txt') == 'text/plain'
    assert guess_mimetype('image.png') == 'image/png'
    assert guess_mimetype('blob.unknownext') == DEFAULT_MIMETYPE
    assert guess_mimetype('test/') == DEFAULT_MIMETYPE
