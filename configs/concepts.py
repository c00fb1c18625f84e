"""
Relevance patterns and the controlled concept vocabulary used to select
in-domain abstracts.
"""

class RelevancePatterns:
    """Keyword phrases and structured patterns matched against titles and abstracts"""

    PHRASES = [
        'social media', 'social networking', 'social network site',
        'online social network', 'facebook', 'twitter', 'instagram',
        'tiktok', 'youtube', 'snapchat', 'whatsapp', 'reddit', 'weibo',
        'wechat', 'linkedin', 'microblog', 'online community',
        'online communities', 'user-generated content', 'influencer'
    ]

    # Up to four intervening words between the anchor terms
    STRUCTURED = [
        r'\bsocial\W+(?:\w+\W+){0,4}?network\w*\W+(?:\w+\W+){0,4}?sites?\b',
        r'\bsocial\W+(?:\w+\W+){0,2}?platforms?\b'
    ]


class ConceptVocabulary:
    """Controlled vocabulary for a document's main concept"""

    MAIN_CONCEPTS = {
        'Psychology', 'Sociology', 'Political science', 'Philosophy',
        'Computer science', 'Business', 'Economics', 'Medicine',
        'Law', 'Communication', 'Education', 'Media studies'
    }
