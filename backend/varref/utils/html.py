"""HTML fragment helpers."""

from bs4 import BeautifulSoup, Tag


def parse_fragment(html: str) -> tuple[BeautifulSoup, Tag]:
    """Parse an HTML fragment.

    The fragment is wrapped in a div so lxml keeps leading text as is, then
    the wrapper is dissolved into the body. Stray closing tags in the
    fragment can close the wrapper early; whatever follows them still ends
    up in the returned container.

    Returns:
        Tuple of (soup, element whose children are the fragment's nodes)
    """
    soup = BeautifulSoup(f"<div>{html}</div>", "lxml")
    container = soup.body or soup
    wrapper = container.find("div", recursive=False)
    if wrapper is not None:
        wrapper.unwrap()
    return soup, container
