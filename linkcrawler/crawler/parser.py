"""
Web page parser for extracting title, text, links and images.
"""

import re
import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse, urlunparse
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, Comment


@dataclass
class Link:
    """An outbound link and the text it was presented with."""
    url: str
    title: str = ""


@dataclass
class ParsedContent:
    """Container for parsed web page content."""
    url: str
    title: Optional[str] = None
    content: Optional[str] = None
    links: List[Link] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    word_count: int = 0


def normalize_url(url: str) -> str:
    """Normalize URL by lowercasing the host and removing the fragment."""
    try:
        parsed = urlparse(url)
        return urlunparse((
            parsed.scheme,
            parsed.netloc.lower(),
            parsed.path,
            parsed.params,
            parsed.query,
            ''
        ))
    except ValueError:
        return url


class ContentParser:
    """
    Parses HTML content to extract the title, plaintext body, links and images.
    """

    # Links to these are resources, not pages
    skip_extensions = (
        '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp',
        '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
        '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
        '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
        '.css', '.js', '.ico', '.woff', '.woff2', '.ttf', '.eot'
    )

    def __init__(self, allowed_domains: Optional[List[str]] = None,
                 blocked_domains: Optional[List[str]] = None):
        self.allowed_domains = set(allowed_domains) if allowed_domains else set()
        self.blocked_domains = set(blocked_domains) if blocked_domains else set()
        self.logger = logging.getLogger(__name__)

        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content.

        Malformed markup never raises; whatever could be extracted is returned.

        Args:
            url: The URL of the page, used to resolve relative links
            html_content: Raw HTML content

        Returns:
            ParsedContent object with extracted data
        """
        parsed_content = ParsedContent(url=url)
        try:
            soup = BeautifulSoup(html_content or '', 'lxml')

            for script in soup(["script", "style", "noscript"]):
                script.decompose()

            for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
                comment.extract()

            self._extract_title(soup, parsed_content)
            # Links and images first: body extraction prunes navigation elements
            self._extract_links(soup, parsed_content, url)
            self._extract_images(soup, parsed_content, url)
            self._extract_main_content(soup, parsed_content)

            if parsed_content.content:
                parsed_content.word_count = len(parsed_content.content.split())

            self.logger.debug(f"Parsed content from {url}: {parsed_content.word_count} words, "
                              f"{len(parsed_content.links)} links")

        except Exception as e:
            self.logger.error(f"Error parsing content from {url}: {e}")

        return parsed_content

    def _extract_title(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        title_tag = soup.find('title')
        if title_tag:
            parsed_content.title = self._clean_text(title_tag.get_text())

    def _extract_main_content(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        """Extract main text content."""
        content_element = soup.find('body') or soup

        for unwanted in content_element.select('nav, footer, aside'):
            unwanted.decompose()

        text_content = content_element.get_text(separator=' ', strip=True)
        parsed_content.content = self._clean_text(text_content)

    def _extract_links(self, soup: BeautifulSoup, parsed_content: ParsedContent, base_url: str):
        """Extract and normalize links, keeping the first title seen per URL."""
        links = {}

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue

            normalized_url = normalize_url(urljoin(base_url, href))
            if normalized_url in links or not self._is_valid_url(normalized_url):
                continue

            title = self._clean_text(anchor.get_text()) or self._clean_text(anchor.get('title', ''))
            links[normalized_url] = Link(url=normalized_url, title=title)

        parsed_content.links = list(links.values())

    def _extract_images(self, soup: BeautifulSoup, parsed_content: ParsedContent, base_url: str):
        images = {}

        for img in soup.find_all('img', src=True):
            src = img['src'].strip()
            if not src or src.startswith('data:'):
                continue
            absolute_url = normalize_url(urljoin(base_url, src))
            if urlparse(absolute_url).scheme in ('http', 'https'):
                images[absolute_url] = None

        parsed_content.images = list(images)

    def _is_valid_url(self, url: str) -> bool:
        """Check if URL is a crawlable page within the configured domains."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False

        if not parsed.scheme or not parsed.netloc:
            return False

        if parsed.scheme not in ['http', 'https']:
            return False

        domain = parsed.netloc.lower()

        if any(blocked in domain for blocked in self.blocked_domains):
            return False

        if self.allowed_domains and not any(allowed in domain for allowed in self.allowed_domains):
            return False

        return not parsed.path.lower().endswith(self.skip_extensions)

    def _clean_text(self, text: str) -> str:
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())
