"""API response fixtures for eBay client tests.

These fixtures mimic the structure of actual Trading (XML) and
Browse (JSON) API responses.
"""

# GetMyeBaySelling (success, two active items)
MY_EBAY_SELLING_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<GetMyeBaySellingResponse xmlns="urn:ebay:apis:eBLBaseComponents">
  <Timestamp>2025-01-15T10:00:00.000Z</Timestamp>
  <Ack>Success</Ack>
  <Version>1291</Version>
  <ActiveList>
    <ItemArray>
      <Item>
        <ItemID>110012345678</ItemID>
        <SKU>SHEET-Q-WHT</SKU>
        <Title>Luxe 4 Piece Microfiber Sheet Set Queen White</Title>
        <Quantity>25</Quantity>
        <QuantityAvailable>20</QuantityAvailable>
        <ListingDetails>
          <StartTime>2024-12-01T08:30:00.000Z</StartTime>
          <EndTime>2025-01-31T08:30:00.000Z</EndTime>
          <ViewItemURL>https://www.ebay.com/itm/110012345678</ViewItemURL>
        </ListingDetails>
        <SellingStatus>
          <CurrentPrice currencyID="USD">24.99</CurrentPrice>
          <QuantitySold>5</QuantitySold>
        </SellingStatus>
        <TimeLeft>P16DT12H</TimeLeft>
        <WatchCount>7</WatchCount>
        <PictureDetails>
          <GalleryURL>https://i.ebayimg.com/a.jpg</GalleryURL>
          <PictureURL>https://i.ebayimg.com/1.jpg</PictureURL>
          <PictureURL>https://i.ebayimg.com/2.jpg</PictureURL>
        </PictureDetails>
        <ItemSpecifics>
          <NameValueList>
            <Name>Brand</Name>
            <Value>Luxe</Value>
          </NameValueList>
          <NameValueList>
            <Name>Size</Name>
            <Value>Queen</Value>
          </NameValueList>
        </ItemSpecifics>
      </Item>
      <Item>
        <ItemID>110087654321</ItemID>
        <Title>Velvet Duvet Cover King</Title>
        <SellingStatus>
          <CurrentPrice currencyID="USD">49.00</CurrentPrice>
        </SellingStatus>
      </Item>
    </ItemArray>
    <PaginationResult>
      <TotalNumberOfPages>1</TotalNumberOfPages>
      <TotalNumberOfEntries>2</TotalNumberOfEntries>
    </PaginationResult>
  </ActiveList>
</GetMyeBaySellingResponse>
"""

# GetSellerList (success, one item, more pages)
SELLER_LIST_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<GetSellerListResponse xmlns="urn:ebay:apis:eBLBaseComponents">
  <Ack>Success</Ack>
  <HasMoreItems>true</HasMoreItems>
  <ItemArray>
    <Item>
      <ItemID>110099999999</ItemID>
      <Title>Cotton Quilt Twin</Title>
    </Item>
  </ItemArray>
</GetSellerListResponse>
"""

# Trading API failure: page out of range
INVALID_PAGE_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<GetSellerListResponse xmlns="urn:ebay:apis:eBLBaseComponents">
  <Ack>Failure</Ack>
  <Errors>
    <ShortMessage>Page number is out of range.</ShortMessage>
    <LongMessage>Page number is out of range.</LongMessage>
    <ErrorCode>340</ErrorCode>
    <SeverityCode>Error</SeverityCode>
  </Errors>
</GetSellerListResponse>
"""

# Trading API failure: window outside supported history
DATE_RANGE_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<GetSellerListResponse xmlns="urn:ebay:apis:eBLBaseComponents">
  <Ack>Failure</Ack>
  <Errors>
    <ShortMessage>Invalid date range.</ShortMessage>
    <LongMessage>The start time range is invalid. Start date is too far in the past.</LongMessage>
    <ErrorCode>21921</ErrorCode>
    <SeverityCode>Error</SeverityCode>
  </Errors>
</GetSellerListResponse>
"""

# Trading API failure: auth token
AUTH_FAILURE_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<GetMyeBaySellingResponse xmlns="urn:ebay:apis:eBLBaseComponents">
  <Ack>Failure</Ack>
  <Errors>
    <ShortMessage>Invalid IAF token.</ShortMessage>
    <LongMessage>IAF token supplied is invalid.</LongMessage>
    <ErrorCode>21916984</ErrorCode>
    <SeverityCode>Error</SeverityCode>
  </Errors>
</GetMyeBaySellingResponse>
"""

# Browse item_summary/search
BROWSE_SEARCH_RESPONSE = {
    "total": 3,
    "itemSummaries": [
        {
            "itemId": "v1|2001|0",
            "title": "4 Piece Microfiber Sheet Set Queen Deep Pocket",
            "price": {"value": "19.99", "currency": "USD"},
            "seller": {"username": "bedding_pro", "feedbackPercentage": "99.6", "feedbackScore": 52000},
            "shippingOptions": [{"shippingCost": {"value": "0.00", "currency": "USD"}}],
            "itemLocation": {"country": "US"},
            "itemWebUrl": "https://www.ebay.com/itm/2001",
        },
        {
            "itemId": "v1|2002|0",
            "title": "Microfiber Sheet Set Queen",
            "price": {"value": "29.99", "currency": "USD"},
            "seller": {"username": "small_shop", "feedbackPercentage": "97.0", "feedbackScore": 150},
            "shippingOptions": [{"shippingCost": {"value": "4.99", "currency": "USD"}}],
            "itemLocation": {"country": "US"},
            "itemWebUrl": "https://www.ebay.com/itm/2002",
        },
        {
            "itemId": "v1|2003|0",
            "title": "Queen Microfiber 4 Piece Sheet Set Hotel Luxury",
            "price": {"value": "22.50", "currency": "USD"},
            "seller": {"username": "linen_house", "feedbackPercentage": "98.9", "feedbackScore": 18000},
            "itemLocation": {"country": "CN"},
            "itemWebUrl": "https://www.ebay.com/itm/2003",
        },
    ],
}

# Browse item details (get_items_by_item_id)
BROWSE_ITEMS_RESPONSE = {
    "items": [
        {
            "itemId": "v1|2001|0",
            "estimatedAvailabilities": [
                {"estimatedAvailableQuantity": 3, "estimatedSoldQuantity": 120}
            ],
        },
        {
            "itemId": "v1|2003|0",
            "estimatedAvailabilities": [{"estimatedAvailableQuantity": 40}],
        },
    ]
}

# Browse error (400)
BROWSE_ERROR_RESPONSE = {
    "errors": [
        {
            "errorId": 12001,
            "domain": "API_BROWSE",
            "category": "REQUEST",
            "message": "The 'filter' value is invalid.",
            "longMessage": "The 'filter' value is invalid. Check the price range syntax.",
        }
    ]
}

# Marketing API promotions (GET /sell/marketing/v1/promotion), as of 2025-01-15T12:00Z
MARKETING_PROMOTIONS_RESPONSE = {
    "href": "https://api.ebay.com/sell/marketing/v1/promotion?limit=50&offset=0&marketplace_id=EBAY_US",
    "limit": 50,
    "offset": 0,
    "total": 5,
    "promotions": [
        {
            "promotionId": "5001",
            "name": "Winter Sheets Markdown",
            "promotionType": "MARKDOWN_SALE",
            "promotionStatus": "RUNNING",
            "marketplaceId": "EBAY_US",
            "startDate": "2025-01-01T00:00:00.000Z",
            "endDate": "2025-01-16T10:00:00.000Z",
            "selectedInventoryDiscounts": [{"discountBenefit": {"percentageOffItem": "20"}}],
            "inventoryCriterion": {"listingIds": ["110", "111", "112"]},
            "promotionHref": "https://api.ebay.com/sell/marketing/v1/item_price_markdown/5001",
        },
        {
            "promotionId": "5002",
            "name": "Spend $50 save $5",
            "promotionType": "ORDER_DISCOUNT",
            "promotionStatus": "SCHEDULED",
            "marketplaceId": "EBAY_US",
            "startDate": "2025-01-10T00:00:00.000Z",
            "endDate": "2025-01-15T16:30:00.000Z",
            "discountRules": [
                {
                    "discountBenefit": {"amountOffOrder": {"value": "5.0", "currency": "USD"}},
                    "discountSpecification": {"minAmount": {"value": "50.0", "currency": "USD"}},
                }
            ],
            "inventoryCriterion": {"ruleCriteria": {"selectionRules": [{"categoryIds": ["20444"]}]}},
        },
        {
            "promotionId": "5003",
            "name": "Spring Preview",
            "promotionType": "MARKDOWN_SALE",
            "promotionStatus": "RUNNING",
            "marketplaceId": "EBAY_US",
            "startDate": "2025-01-01T00:00:00.000Z",
            "endDate": "2025-02-20T00:00:00.000Z",
        },
        {
            "promotionId": "5004",
            "name": "Holiday Clearance",
            "promotionType": "MARKDOWN_SALE",
            "promotionStatus": "ENDED",
            "marketplaceId": "EBAY_US",
            "startDate": "2024-12-01T00:00:00.000Z",
            "endDate": "2025-01-15T20:00:00.000Z",
        },
        {
            "promotionId": "5005",
            "promotionType": "VOLUME_DISCOUNT",
            "promotionStatus": "PAUSED",
            "marketplaceId": "EBAY_US",
            "startDate": "2025-01-05T00:00:00.000Z",
            "endDate": "2025-01-16T08:00:00.000Z",
        },
    ],
}
