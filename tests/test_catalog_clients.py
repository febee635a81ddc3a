#!/usr/bin/env python3
"""
Catalog Adapter Tests
Safilo and Modern Optical filter / Marchon SKU JSON APIs, the Europa product page and the
Ideal Optics autocomplete + style page, with requests.Session mocked.
No test touches the network.
"""

import html
import json
import os
import unittest
from pathlib import Path
from unittest import mock

# Setup path
TEST_DIR = Path(__file__).parent
PROJECT_ROOT = TEST_DIR.parent
os.chdir(PROJECT_ROOT)

import requests

from step1_extract.models import ExtractedLineItem
from step2_enrich.catalog_client import CatalogRequestError
from step2_enrich.europa_catalog import EuropaCatalogClient, extract_short_code
from step2_enrich.ideal_optics_catalog import IdealOpticsCatalogClient
from step2_enrich.marchon_catalog import MarchonCatalogClient
from step2_enrich.modern_optical_catalog import ModernOpticalCatalogClient
from step2_enrich.safilo_catalog import SafiloCatalogClient, build_filter_payload

BRAND_CODES = {'Michael Ryen': 'MR', 'Scott Harris': 'SH', "Cote d'Azur": 'CDA'}


def make_response(status_code=200, payload=None, text=None):
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError('No JSON object could be decoded')
    response.text = text if text is not None else json.dumps(payload or {})
    return response


def make_http(response):
    http = mock.Mock(spec=requests.Session)
    http.headers = {}
    http.request.return_value = response
    return http


class TestSafiloCatalogClient(unittest.TestCase):
    """Test MySafilo CatalogAPI/filter adapter"""

    URL = 'https://catalog.test/US/api/CatalogAPI/filter'

    STYLES = [{
        'collectionName': 'CARRERA',
        'styleCode': 'VICTORY LANE',
        'colorGroup': [
            {'color': '807', 'colorName': 'BLACK', 'sizes': [
                {'eyeSize': '54', 'bridge': '17', 'temple': '140', 'upc': '716736000001',
                 'sku': 'VICLANE80754', 'wholesale': '89.50', 'msrp': '179.00', 'isInStock': True,
                 'availableStatus': 'Available', 'material': 'Acetate', 'gender': 'Unisex',
                 'additionalData': [{'name': 'COUNTRY OF ORIGIN', 'value': 'Italy'},
                                    {'name': 'FITTING', 'value': 'Standard'}]},
                {'a': '56', 'dbl': '17', 'temple': '145', 'frameId': '8056597000002', 'price': 92},
            ]},
            {'color': '086', 'colorName': 'HAVANA', 'sizes': []},
        ],
    }]

    def make_client(self, response, **kwargs):
        return SafiloCatalogClient(self.URL, http_session=make_http(response), **kwargs)

    def test_filter_payload(self):
        client = self.make_client(make_response(payload=self.STYLES), timeout=7)
        client.fetch('VICTORY LANE')

        method, url = client.http.request.call_args.args
        kwargs = client.http.request.call_args.kwargs
        body = kwargs['json']
        self.assertEqual((method, url), ('POST', self.URL))
        self.assertEqual(kwargs['timeout'], 7)
        self.assertEqual(body['search'], 'VICTORY LANE')
        self.assertEqual(body['Collections'], [])
        self.assertEqual(body['COUNTRYOFORIGIN'], [])
        self.assertFalse(body['InStock'])
        self.assertEqual(body['DBLSizes'], {'min': -1, 'max': -1})

    def test_build_filter_payload_leaves_facets_open(self):
        body = build_filter_payload('CATRINA')
        self.assertEqual(body['search'], 'CATRINA')
        self.assertTrue(all(value == [] for key, value in body.items()
                            if key in ('Shapes', 'FrameTypes', 'Genders', 'LensMaterials')))
        self.assertEqual(body['ASizes'], {'min': -1, 'max': -1})

    def test_found(self):
        result = self.make_client(make_response(payload=self.STYLES)).fetch('VICTORY LANE')

        self.assertTrue(result.found)
        self.assertEqual(result.brand, 'CARRERA')
        self.assertEqual(result.model, 'VICTORY LANE')
        self.assertEqual(len(result.variants), 2, "One variant per size; a color with no sizes adds none")
        first, second = result.variants
        self.assertEqual(first.color_code, '807')
        self.assertEqual(first.color_name, 'BLACK')
        self.assertEqual((first.eye_size, first.bridge, first.temple_length), ('54', '17', '140'))
        self.assertEqual(first.upc, '716736000001')
        self.assertEqual(first.wholesale_price, 89.5)
        self.assertEqual(first.retail_price, 179.0)
        self.assertTrue(first.in_stock)
        self.assertEqual(first.availability, 'Available')
        self.assertEqual(first.extra['country_of_origin'], 'Italy')
        self.assertEqual(first.extra['fitting'], 'Standard')

    def test_alternate_size_keys(self):
        second = self.make_client(make_response(payload=self.STYLES)).fetch('VICTORY LANE').variants[1]
        self.assertEqual((second.eye_size, second.bridge), ('56', '17'))
        self.assertEqual(second.ean, '8056597000002')
        self.assertEqual(second.wholesale_price, 92.0)
        self.assertEqual(second.brand, 'CARRERA', "Variant inherits style brand")
        self.assertFalse(second.in_stock)

    def test_empty_array_is_not_found(self):
        result = self.make_client(make_response(payload=[])).fetch('NOPE')
        self.assertFalse(result.found)
        self.assertFalse(result.failed)

    def test_style_without_color_groups_is_not_found(self):
        payload = [{'collectionName': 'CARRERA', 'styleCode': 'CA 1', 'colorGroup': []}]
        result = self.make_client(make_response(payload=payload)).fetch('CA 1')
        self.assertFalse(result.found)
        self.assertIn('No color variants', result.reason)

    def test_object_body_raises(self):
        with self.assertRaises(CatalogRequestError):
            self.make_client(make_response(payload={'products': []})).fetch('VICTORY LANE')

    def test_404_is_not_found(self):
        self.assertFalse(self.make_client(make_response(status_code=404, payload={})).fetch('NOPE').found)

    def test_server_error_raises(self):
        with self.assertRaises(CatalogRequestError) as ctx:
            self.make_client(make_response(status_code=503, payload={})).fetch('VICTORY LANE')
        self.assertEqual(ctx.exception.status_code, 503)

    def test_invalid_json_raises(self):
        with self.assertRaises(CatalogRequestError):
            self.make_client(make_response(text='<html>')).fetch('VICTORY LANE')

    def test_headers_applied_to_session(self):
        client = self.make_client(make_response(payload=self.STYLES), headers={'Accept': 'application/json'})
        self.assertEqual(client.http.headers['Accept'], 'application/json')


class TestMarchonCatalogClient(unittest.TestCase):
    """Test MyMarchon SKU API adapter"""

    PAYLOAD = {
        'serviceStatus': {'resultCode': 0},
        'skuDetail': [
            {'style': 'SF2223N', 'upcNumber': '886895000001', 'color': '744',
             'colorDescription': 'DARK HAVANA', 'SSA': '54', 'SSDBL': '17', 'templeLength': '140',
             'retail': 120.0, 'msrp': 320.0, 'stockStatus': 'Available',
             'marketingGroupDescription': 'Salvatore Ferragamo', 'marketingGroupCode': ' SF ',
             'planMaterial': 'Acetate', 'gender': 'Female'},
            {'style': 'SF2223N', 'upcNumber': '886895000002', 'color': '001', 'SSA': '52',
             'stockStatus': 'Backorder', 'marketingGroupDescription': 'Salvatore Ferragamo'},
        ],
    }

    def make_client(self, response):
        return MarchonCatalogClient('https://api.test/sku', http_session=make_http(response))

    def test_payload(self):
        client = self.make_client(make_response(payload=self.PAYLOAD))
        client.fetch('SF2223N')
        method, url = client.http.request.call_args.args
        body = client.http.request.call_args.kwargs['json']
        self.assertEqual((method, url), ('POST', 'https://api.test/sku'))
        self.assertEqual(body['style'], 'SF2223N')
        self.assertEqual(body['itemType'], 'FRAME')
        self.assertEqual(body['salesOrg'], '2010')
        self.assertEqual(body['userCredential']['countryCode'], 'US')

    def test_found(self):
        result = self.make_client(make_response(payload=self.PAYLOAD)).fetch('SF2223N')
        self.assertTrue(result.found)
        self.assertEqual(result.brand, 'Salvatore Ferragamo')
        first, second = result.variants
        self.assertEqual(first.color_code, '744')
        self.assertEqual(first.bridge, '17')
        self.assertEqual(first.wholesale_price, 120.0)
        self.assertEqual(first.retail_price, 320.0)
        self.assertTrue(first.in_stock)
        self.assertEqual(first.extra['marketing_group_code'], 'SF')
        self.assertFalse(second.in_stock)

    def test_non_zero_result_code_is_not_found(self):
        payload = {'serviceStatus': {'resultCode': 1, 'resultMessage': 'Style not found'}}
        result = self.make_client(make_response(payload=payload)).fetch('XX1')
        self.assertFalse(result.found)
        self.assertIn('Style not found', result.reason)

    def test_search_terms_prefer_frame_param(self):
        client = self.make_client(make_response(payload=self.PAYLOAD))
        item = ExtractedLineItem(1, '', 'Salvatore Ferragamo', 'SF2223', attributes={'frame': 'SF2223N'})
        self.assertEqual(client.search_terms(item), ['SF2223N', 'SF2223'])


class TestEuropaCatalogClient(unittest.TestCase):
    """Test europaeye.com product page adapter"""

    VARIATIONS = [
        {'id': 'MRX104153-18', 'productName': 'MRX-104',
         'data': {'collectionName': 'Michael Ryen', 'shortCode': 'MRX104', 'colorNo': '1', 'color': 'Black',
                  'eyeSizeA': 53, 'bridgeDbl': 18, 'templeTmp': 140, 'upcCode': '123',
                  'customerPrice': '64.00', 'listPrice': '160.00', 'isAvailable': True,
                  'availabilityText': 'In Stock', 'frontMaterial': 'Metal'}},
        {'id': 'MRX104253-18', 'productName': 'MRX-104',
         'data': {'collectionName': 'Michael Ryen', 'colorNo': '2', 'color': 'Gunmetal',
                  'eyeSizeA': 53, 'bridgeDbl': 18, 'isAvailable': False}},
    ]

    def page(self, variations):
        attribute = html.escape(json.dumps(variations), quote=True)
        return f'<html><body><div id="app"><router-view :init-variations="{attribute}"></router-view></div></body></html>'

    def make_client(self, response):
        return EuropaCatalogClient('https://europa.test/products/', brand_codes=BRAND_CODES,
                                   http_session=make_http(response))

    def test_found(self):
        client = self.make_client(make_response(text=self.page(self.VARIATIONS)))
        result = client.fetch('MRX104153-18')

        client.http.request.assert_called_once_with('GET', 'https://europa.test/products/MRX104153-18', timeout=15)
        self.assertTrue(result.found)
        self.assertEqual(result.brand, 'Michael Ryen')
        self.assertEqual(result.model, 'MRX-104')
        first = result.variants[0]
        self.assertEqual(first.color_code, '1')
        self.assertEqual(first.eye_size, '53')
        self.assertEqual(first.bridge, '18')
        self.assertEqual(first.wholesale_price, 64.0)
        self.assertTrue(first.in_stock)
        self.assertEqual(first.extra['short_code'], 'MRX104')
        self.assertFalse(result.variants[1].in_stock)

    def test_page_without_data_is_not_found(self):
        client = self.make_client(make_response(text='<html><body>Product</body></html>'))
        self.assertFalse(client.fetch('MRX104153-18').found)

    def test_empty_variations_is_not_found(self):
        client = self.make_client(make_response(text=self.page([])))
        self.assertFalse(client.fetch('MRX104153-18').found)

    def test_404_is_not_found(self):
        client = self.make_client(make_response(status_code=404, text=''))
        result = client.fetch('MRX104153-18')
        self.assertFalse(result.found)
        self.assertFalse(result.failed)

    def test_short_code(self):
        self.assertEqual(extract_short_code('MRX-104'), 'MRX104')
        self.assertEqual(extract_short_code('CDA-422'), 'CDA422')
        self.assertEqual(extract_short_code('Sport 104', 'Michael Ryen', BRAND_CODES), 'MR104')
        self.assertEqual(extract_short_code('SH 700 Titanium'), 'SH700')
        self.assertEqual(extract_short_code(''), '')
        self.assertEqual(extract_short_code('Classic'), '')

    def test_search_terms_from_document_bridge(self):
        client = self.make_client(make_response(text=''))
        item = ExtractedLineItem(1, '', 'Michael Ryen', 'MRX-104', color_code='1', eye_size='53', bridge='17')
        terms = client.search_terms(item)
        self.assertEqual(terms[0], 'MRX104153-17')
        self.assertEqual(terms[1:], ['MRX104153-16', 'MRX104153-18', 'MRX104153-19', 'MRX104153-20'])

    def test_search_terms_default_bridge(self):
        client = self.make_client(make_response(text=''))
        item = ExtractedLineItem(1, '', 'Michael Ryen', 'MRX-104', eye_size='53')
        self.assertEqual(client.search_terms(item)[0], 'MRX104153-18', "Missing color defaults to 1, bridge to 18")
        self.assertEqual(len(client.search_terms(item)), 5)

    def test_search_terms_need_eye_size(self):
        client = self.make_client(make_response(text=''))
        self.assertEqual(client.search_terms(ExtractedLineItem(1, '', 'Michael Ryen', 'MRX-104')), [])

class TestModernOpticalCatalogClient(unittest.TestCase):
    """Test Modern Optical filter adapter"""

    URL = 'https://modern.test/US/api/CatalogAPI/filter'

    STYLES = [
        {'collectionName': 'B.M.E.C.', 'styleCode': 'BIG CHAMPION', 'colorGroup': [
            {'color': 'Brown', 'sizes': [{'eyeSize': '60', 'upc': '1'}]}]},
        {'collectionName': 'B.M.E.C.', 'styleCode': 'BIG CHAMP', 'styleName': 'Big Champ', 'colorGroup': [
            {'color': 'Black', 'sizes': [{'eyeSize': '58', 'bridge': '19', 'temple': '150', 'upc': '2'}]},
            {'color': 'Gunmetal', 'sizes': [{'eyeSize': '58', 'upc': '3'}]}]},
    ]

    def make_client(self, response):
        return ModernOpticalCatalogClient(self.URL, http_session=make_http(response))

    def test_payload(self):
        client = self.make_client(make_response(payload=self.STYLES))
        client.fetch('BIG CHAMP')
        body = client.http.request.call_args.kwargs['json']
        self.assertEqual(body['search'], 'BIG CHAMP')
        self.assertEqual(body['brandName'], '')
        self.assertEqual(body['Colors'], [])
        self.assertEqual(body['PriceGroup'], [])
        self.assertNotIn('COUNTRYOFORIGIN', body)

    def test_exact_style_preferred(self):
        result = self.make_client(make_response(payload=self.STYLES)).fetch('BIG CHAMP')
        self.assertTrue(result.found)
        self.assertEqual(result.model, 'BIG CHAMP')
        self.assertEqual([v.color_code for v in result.variants], ['Black', 'Gunmetal'])
        self.assertEqual(result.variants[0].temple_length, '150')

    def test_brand_and_model_term_matches_style(self):
        result = self.make_client(make_response(payload=self.STYLES)).fetch('B.M.E.C. BIG CHAMP')
        self.assertEqual(result.model, 'BIG CHAMP')

    def test_falls_back_to_first_style(self):
        result = self.make_client(make_response(payload=self.STYLES)).fetch('CHAMP')
        self.assertEqual(result.model, 'BIG CHAMPION')

    def test_search_terms_model_first(self):
        client = self.make_client(make_response(payload=[]))
        item = ExtractedLineItem(1, '', 'B.M.E.C.', 'BIG CHAMP')
        self.assertEqual(client.search_terms(item), ['BIG CHAMP', 'B.M.E.C. BIG CHAMP'])

    def test_malformed_body_raises(self):
        with self.assertRaises(CatalogRequestError):
            self.make_client(make_response(payload={'styles': []})).fetch('BIG CHAMP')


class TestIdealOpticsCatalogClient(unittest.TestCase):
    """Test i-dealoptics.com autocomplete + style page adapter"""

    BASE = 'https://ideal.test'

    SUGGESTIONS = {'suggestions': [
        {'value': 'BOWERY', 'data': {'BrandUrl': 'ideal-optics', 'CollectionUrl': 'urban', 'StyleUrl': 'bowery'}},
    ]}

    PAGE = """
    <html><body>
    <div class="style-detail">
      <h1>BOWERY</h1>
      <p class="text-small">Eye Bridge Temple A B ED</p>
      <p class="text-small"><span>52</span><span>18</span><span>140</span><span>52.5</span><span>38</span><span>55</span></p>
    </div>
    <div id="styleDescriptions"><p class="text-small">Womens acetate frame with keyhole bridge</p></div>
    <div id="frameDetailOwlCarousel">
      <div class="item"><img data-upc="840001" src="/img/frame.jpg?sku=BOW-BLK&amp;upc=840001"></div>
      <div class="item"><img src="/img/frame.jpg?upc=840002&amp;sku=BOW-TOR"></div>
    </div>
    <div class="text-uppercase top-margin"><a class="goTo">Black Crystal</a><a class="goTo">Tortoise</a></div>
    <script>var fitTypeLookup = {}; fitTypeLookup['3'] = 'Medium';</script>
    </body></html>
    """

    def make_client(self, *responses):
        http = make_http(None)
        http.request.side_effect = list(responses)
        return IdealOpticsCatalogClient(self.BASE, http_session=http)

    def test_two_step_lookup(self):
        client = self.make_client(make_response(payload=self.SUGGESTIONS), make_response(text=self.PAGE))
        result = client.fetch('BOWERY')

        self.assertEqual(client.http.request.call_args_list, [
            mock.call('GET', 'https://ideal.test/Home/SearchFrames/', timeout=15, params={'q': 'BOWERY'},
                      headers={'X-Requested-With': 'XMLHttpRequest'}),
            mock.call('GET', 'https://ideal.test/catalog/ideal-optics/urban/bowery', timeout=15),
        ])
        self.assertTrue(result.found)
        self.assertEqual(result.brand, 'Ideal Optics')
        self.assertEqual(result.model, 'BOWERY')

    def test_variants(self):
        client = self.make_client(make_response(payload=self.SUGGESTIONS), make_response(text=self.PAGE))
        black, tortoise = client.fetch('BOWERY').variants

        self.assertEqual((black.upc, black.sku), ('840001', 'BOW-BLK'))
        self.assertEqual((tortoise.upc, tortoise.sku), ('840002', 'BOW-TOR'))
        self.assertEqual(black.color_code, 'BLACK CRYSTAL')
        self.assertEqual(tortoise.color_name, 'Tortoise')
        self.assertEqual((black.eye_size, black.bridge, black.temple_length), ('52', '18', '140'))
        self.assertEqual(black.extra['ed'], '55')
        self.assertEqual(black.extra['fit_type'], 'Medium')
        self.assertEqual(black.gender, 'Womens')
        self.assertEqual(black.material, 'Acetate')
        self.assertIsNone(black.wholesale_price)
        self.assertIsNone(black.in_stock)

    def test_color_names_dropped_when_counts_differ(self):
        page = self.PAGE.replace('<a class="goTo">Tortoise</a>', '')
        client = self.make_client(make_response(payload=self.SUGGESTIONS), make_response(text=page))
        variants = client.fetch('BOWERY').variants
        self.assertEqual(len(variants), 2)
        self.assertEqual([v.color_name for v in variants], ['', ''])

    def test_no_suggestion_is_not_found(self):
        client = self.make_client(make_response(payload={'suggestions': []}))
        result = client.fetch('NOPE')
        self.assertFalse(result.found)
        self.assertFalse(result.failed)
        self.assertEqual(client.http.request.call_count, 1)

    def test_page_without_carousel_is_not_found(self):
        client = self.make_client(make_response(payload=self.SUGGESTIONS),
                                  make_response(text='<html><body>Discontinued</body></html>'))
        self.assertFalse(client.fetch('BOWERY').found)

    def test_malformed_autocomplete_raises(self):
        client = self.make_client(make_response(payload=['BOWERY']))
        with self.assertRaises(CatalogRequestError):
            client.fetch('BOWERY')

    def test_search_terms_style_only(self):
        client = self.make_client()
        item = ExtractedLineItem(1, '', 'Ideal Optics', 'BOWERY')
        self.assertEqual(client.search_terms(item), ['BOWERY'])


if __name__ == '__main__':
    unittest.main()
