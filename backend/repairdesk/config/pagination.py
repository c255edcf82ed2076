DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

def normalize_pagination(page_raw, page_size_raw):
    try:
        page = int(page_raw) if page_raw not in (None, '') else DEFAULT_PAGE
        page_size = int(page_size_raw) if page_size_raw not in (None, '') else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        raise ValueError('page/page_size must be int')
    if page < 1 or page_size < 1:
        raise ValueError('page/page_size must be positive')
    page_size = min(page_size, MAX_PAGE_SIZE)
    return page, page_size


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size
