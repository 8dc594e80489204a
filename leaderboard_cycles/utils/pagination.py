def parse_page_args(page, limit, default_limit=10, max_limit=100):
    try:
        page = max(int(page) if page else 1, 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit) if limit else default_limit
    except (TypeError, ValueError):
        limit = default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit


def paginate_query(query, page, limit, default_limit=10, max_limit=100):
    page, limit = parse_page_args(page, limit, default_limit, max_limit)
    items = query.offset((page-1)*limit).limit(limit).all()
    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit
    return items, {"total": total, "page": page, "limit": limit, "total_pages": total_pages}
